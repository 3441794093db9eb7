[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinycnn"
version = "0.1.0"
description = "A small convolutional neural network with forward passes, random initialisation and binary weight files"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["cnn", "neural-network", "convolution", "inference", "numpy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tinycnn = "tinycnn.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tinycnn"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
