"""Binary checkpoint format for network parameters."""

from __future__ import annotations

import struct

import numpy as np

from tinycnn.model import MAX_CONV_LAYERS, MAX_FC_LAYERS, ConvLayer, FullyConnectedLayer

_INT = struct.Struct("<i")
_FLOAT = np.dtype("<f4")


class WeightsFormatError(ValueError):
    """Raised when a checkpoint file is truncated or malformed."""


def _floats(values):
    return np.ascontiguousarray(values, dtype=_FLOAT).tobytes()


def save_weights(cnn, path):
    """Write all layer parameters of ``cnn`` to ``path``."""
    with open(path, "wb") as stream:
        stream.write(_INT.pack(len(cnn.conv_layers)))
        for layer in cnn.conv_layers:
            stream.write(
                struct.pack(
                    "<3i", layer.in_channels, layer.out_channels, layer.kernel_size
                )
            )
            stream.write(_floats(layer.weights))
            stream.write(_floats(layer.biases))
        stream.write(_INT.pack(len(cnn.fc_layers)))
        for layer in cnn.fc_layers:
            stream.write(struct.pack("<2i", layer.in_features, layer.out_features))
            stream.write(_floats(layer.weights))
            stream.write(_floats(layer.biases))


class _Reader:
    def __init__(self, stream):
        self._stream = stream

    def read(self, size):
        data = self._stream.read(size)
        if len(data) != size:
            raise WeightsFormatError(
                f"unexpected end of file: wanted {size} bytes, got {len(data)}"
            )
        return data

    def ints(self, count):
        return struct.unpack(f"<{count}i", self.read(4 * count))

    def dims(self, count):
        values = self.ints(count)
        if any(v <= 0 for v in values):
            raise WeightsFormatError(f"invalid layer dimensions {values}")
        return values

    def count(self, limit):
        (value,) = self.ints(1)
        if not 0 <= value <= limit:
            raise WeightsFormatError(f"invalid layer count {value}")
        return value

    def floats(self, count):
        return np.frombuffer(self.read(4 * count), dtype=_FLOAT).astype(np.float32)


def load_weights(cnn, path):
    """Replace the layers of ``cnn`` with those stored in ``path``."""
    with open(path, "rb") as stream:
        reader = _Reader(stream)
        conv_layers = []
        for _ in range(reader.count(MAX_CONV_LAYERS)):
            in_ch, out_ch, ks = reader.dims(3)
            weights = reader.floats(in_ch * out_ch * ks * ks)
            biases = reader.floats(out_ch)
            conv_layers.append(ConvLayer(in_ch, out_ch, ks, weights, biases))
        fc_layers = []
        for _ in range(reader.count(MAX_FC_LAYERS)):
            in_f, out_f = reader.dims(2)
            weights = reader.floats(in_f * out_f)
            biases = reader.floats(out_f)
            fc_layers.append(FullyConnectedLayer(in_f, out_f, weights, biases))
    cnn.conv_layers = conv_layers
    cnn.fc_layers = fc_layers