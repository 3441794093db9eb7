"""A small convolutional neural network: forward passes, split-work passes, initialisation and weight files."""

__version__ = "0.1.0"
__all__ = ["cli", "model", "parallel", "weights"]