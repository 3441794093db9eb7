"""Tensors, layers and the forward pass of a small convolutional network."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

MAX_CONV_LAYERS = 1000
MAX_FC_LAYERS = 1000

LEAKY_SLOPE = np.float32(0.01)
_POOL_FLOOR = np.float32(-1e9)

_rng = np.random.default_rng()


def relu(x):
    """Rectified linear unit; returns a float for scalars, an array otherwise."""
    arr = np.asarray(x, dtype=np.float32)
    out = np.where(arr > 0, arr, np.float32(0)).astype(np.float32)
    return float(out) if out.ndim == 0 else out


def leaky_relu(x):
    """Leaky rectified linear unit with a slope of 0.01 below zero."""
    arr = np.asarray(x, dtype=np.float32)
    out = np.where(arr > 0, arr, LEAKY_SLOPE * arr).astype(np.float32)
    return float(out) if out.ndim == 0 else out


def _normal(mean, stddev, size):
    """Box-Muller normal samples as float32."""
    u1 = 1.0 - _rng.random(size)
    u2 = 1.0 - _rng.random(size)
    z0 = np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
    return np.asarray(z0 * stddev + mean, dtype=np.float32)


def rand_normal(mean, stddev):
    """Draw one sample from a normal distribution."""
    return float(_normal(mean, stddev, None))


@dataclass(eq=False)
class Tensor3D:
    """A channels x height x width block of float32 values."""

    data: np.ndarray

    def __post_init__(self):
        data = np.asarray(self.data, dtype=np.float32)
        if data.ndim != 3:
            raise ValueError(f"tensor data must be 3-dimensional, got {data.ndim}")
        self.data = data

    @classmethod
    def from_flat(cls, width, height, channels, values):
        """Build a tensor from channel-major flat values."""
        flat = np.asarray(values, dtype=np.float32).reshape(-1)
        if flat.size != width * height * channels:
            raise ValueError(
                f"expected {width * height * channels} values, got {flat.size}"
            )
        return cls(flat.reshape(channels, height, width).copy())

    @property
    def width(self):
        return self.data.shape[2]

    @property
    def height(self):
        return self.data.shape[1]

    @property
    def channels(self):
        return self.data.shape[0]


def _as_shape(values, shape, what):
    arr = np.asarray(values, dtype=np.float32)
    expected = int(np.prod(shape))
    if arr.size != expected:
        raise ValueError(f"{what} needs {expected} values, got {arr.size}")
    return arr.reshape(shape).copy()


@dataclass(eq=False)
class ConvLayer:
    """A 2D convolution with ReLU activation and no padding."""

    in_channels: int
    out_channels: int
    kernel_size: int
    weights: np.ndarray
    biases: np.ndarray

    def __post_init__(self):
        if min(self.in_channels, self.out_channels, self.kernel_size) <= 0:
            raise ValueError("convolution dimensions must be positive")
        ks = self.kernel_size
        self.weights = _as_shape(
            self.weights, (self.out_channels, self.in_channels, ks, ks), "weights"
        )
        self.biases = _as_shape(self.biases, (self.out_channels,), "biases")


@dataclass(eq=False)
class FullyConnectedLayer:
    """A dense layer with leaky ReLU activation."""

    in_features: int
    out_features: int
    weights: np.ndarray
    biases: np.ndarray

    def __post_init__(self):
        if min(self.in_features, self.out_features) <= 0:
            raise ValueError("layer dimensions must be positive")
        self.weights = _as_shape(
            self.weights, (self.out_features, self.in_features), "weights"
        )
        self.biases = _as_shape(self.biases, (self.out_features,), "biases")


def conv_forward(tensor, layer):
    """Apply a convolution layer followed by ReLU."""
    if tensor.channels != layer.in_channels:
        raise ValueError(
            f"layer expects {layer.in_channels} channels, tensor has {tensor.channels}"
        )
    ks = layer.kernel_size
    if ks > tensor.width or ks > tensor.height:
        raise ValueError("kernel is larger than the input")
    windows = sliding_window_view(tensor.data, (ks, ks), axis=(1, 2))
    sums = np.einsum("chwij,ocij->ohw", windows, layer.weights, optimize=True)
    return Tensor3D(relu(sums + layer.biases[:, None, None]))


def maxpool_forward(tensor, pool_size):
    """Non-overlapping max pooling; values never drop below -1e9."""
    if pool_size <= 0:
        raise ValueError("pool size must be positive")
    out_h = tensor.height // pool_size
    out_w = tensor.width // pool_size
    cropped = tensor.data[:, : out_h * pool_size, : out_w * pool_size]
    blocks = cropped.reshape(tensor.channels, out_h, pool_size, out_w, pool_size)
    pooled = blocks.max(axis=(2, 4))
    return Tensor3D(np.maximum(pooled, _POOL_FLOOR))


def flatten(tensor):
    """Return the tensor's values as a channel-major 1D array."""
    return tensor.data.reshape(-1).copy()


def fc_forward(vector, layer):
    """Apply a dense layer followed by leaky ReLU."""
    values = np.asarray(vector, dtype=np.float32)
    if values.ndim != 1:
        raise ValueError("input vector must be 1-dimensional")
    if values.size != layer.in_features:
        raise ValueError(
            f"layer expects {layer.in_features} features, got {values.size}"
        )
    return leaky_relu(layer.weights @ values + layer.biases)


@dataclass(eq=False)
class CNN:
    """A stack of convolution layers followed by dense layers."""

    input_width: int = 0
    input_height: int = 0
    input_channels: int = 0
    input_data: np.ndarray | None = None
    conv_layers: list = field(default_factory=list)
    fc_layers: list = field(default_factory=list)
    output: float = 0.0

    def add_conv_layer(self, out_channels, kernel_size, in_channels, mean, stddev):
        """Append a convolution layer with normally distributed parameters."""
        if len(self.conv_layers) >= MAX_CONV_LAYERS:
            raise ValueError(f"at most {MAX_CONV_LAYERS} convolution layers allowed")
        count = out_channels * in_channels * kernel_size * kernel_size
        weights = _normal(mean, stddev, max(count, 0))
        biases = _normal(mean, stddev, max(out_channels, 0))
        layer = ConvLayer(in_channels, out_channels, kernel_size, weights, biases)
        self.conv_layers.append(layer)
        return layer

    def add_fc_layer(self, in_features, out_features, mean, stddev):
        """Append a dense layer with normally distributed parameters."""
        if len(self.fc_layers) >= MAX_FC_LAYERS:
            raise ValueError(f"at most {MAX_FC_LAYERS} dense layers allowed")
        weights = _normal(mean, stddev, max(in_features * out_features, 0))
        biases = _normal(mean, stddev, max(out_features, 0))
        layer = FullyConnectedLayer(in_features, out_features, weights, biases)
        self.fc_layers.append(layer)
        return layer

    def input_tensor(self):
        """The input data as a tensor, leaving the stored data untouched."""
        if self.input_data is None:
            raise ValueError("network has no input data")
        return Tensor3D.from_flat(
            self.input_width, self.input_height, self.input_channels, self.input_data
        )

    def forward(self):
        """Run the network, store the first output value and return it."""
        x = self.input_tensor()
        for layer in self.conv_layers:
            x = conv_forward(x, layer)
        v = flatten(x)
        for layer in self.fc_layers:
            v = fc_forward(v, layer)
        if v.size == 0:
            raise ValueError("network produced an empty output")
        self.output = float(v[0])
        return self.output