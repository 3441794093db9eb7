"""Forward pass with the work of each layer split among several workers.

Each worker computes a contiguous share of a layer's output. The shares
are gathered in worker order, one after another, which matches how the
row-split layers lay their data out: each worker's block is channel-major
over its own rows, and the blocks are joined as they are. With one worker,
or a single channel, this is the same layout as the serial pass.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from tinycnn.model import (
    Tensor3D,
    conv_forward,
    flatten,
    leaky_relu,
    maxpool_forward,
)


def split_work(total, size, rank):
    """Return the range of items that worker ``rank`` of ``size`` handles."""
    if size <= 0:
        raise ValueError("number of workers must be positive")
    if not 0 <= rank < size:
        raise ValueError(f"rank {rank} is outside 0..{size - 1}")
    if total < 0:
        raise ValueError("total must not be negative")
    per_worker, rem = divmod(total, size)
    count = per_worker + 1 if rank < rem else per_worker
    start = rank * per_worker + min(rank, rem)
    return range(start, start + count)


def _run(workers, task):
    """Run ``task(rank)`` for every rank and return the results in rank order."""
    if workers <= 0:
        raise ValueError("number of workers must be positive")
    if workers == 1:
        return [task(0)]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(task, range(workers)))


def _gather(blocks, shape):
    """Join worker blocks one after another and view them as ``shape``."""
    flat = np.concatenate([np.asarray(b, dtype=np.float32).reshape(-1) for b in blocks])
    return flat.reshape(shape)


def _check_conv(tensor, layer):
    if tensor.channels != layer.in_channels:
        raise ValueError(
            f"layer expects {layer.in_channels} channels, tensor has {tensor.channels}"
        )
    ks = layer.kernel_size
    if ks > tensor.width or ks > tensor.height:
        raise ValueError("kernel is larger than the input")
    return tensor.width - ks + 1, tensor.height - ks + 1


def conv_forward_by_rows(tensor, layer, workers):
    """Convolution with ReLU, output rows split among workers."""
    out_w, out_h = _check_conv(tensor, layer)
    ks = layer.kernel_size

    def task(rank):
        rows = split_work(out_h, workers, rank)
        if not rows:
            return np.empty((layer.out_channels, 0, out_w), dtype=np.float32)
        part = tensor.data[:, rows.start : rows.stop + ks - 1, :]
        return conv_forward(Tensor3D(part), layer).data

    blocks = _run(workers, task)
    return Tensor3D(_gather(blocks, (layer.out_channels, out_h, out_w)))


def conv_forward_by_channels(tensor, layer, workers):
    """Convolution with leaky ReLU, output channels split among workers."""
    out_w, out_h = _check_conv(tensor, layer)
    ks = layer.kernel_size
    windows = sliding_window_view(tensor.data, (ks, ks), axis=(1, 2))

    def task(rank):
        channels = split_work(layer.out_channels, workers, rank)
        if not channels:
            return np.empty((0, out_h, out_w), dtype=np.float32)
        weights = layer.weights[channels.start : channels.stop]
        biases = layer.biases[channels.start : channels.stop]
        sums = np.einsum("chwij,ocij->ohw", windows, weights, optimize=True)
        return leaky_relu(sums + biases[:, None, None])

    blocks = _run(workers, task)
    return Tensor3D(_gather(blocks, (layer.out_channels, out_h, out_w)))


def maxpool_forward_by_rows(tensor, pool_size, workers):
    """Non-overlapping max pooling, output rows split among workers."""
    if pool_size <= 0:
        raise ValueError("pool size must be positive")
    out_w = tensor.width // pool_size
    out_h = tensor.height // pool_size

    def task(rank):
        rows = split_work(out_h, workers, rank)
        part = tensor.data[:, rows.start * pool_size : rows.stop * pool_size, :]
        return maxpool_forward(Tensor3D(part), pool_size).data

    blocks = _run(workers, task)
    return Tensor3D(_gather(blocks, (tensor.channels, out_h, out_w)))


def fc_forward_parallel(vector, layer, workers):
    """Dense layer with leaky ReLU, output neurons split among workers."""
    values = np.asarray(vector, dtype=np.float32)
    if values.ndim != 1:
        raise ValueError("input vector must be 1-dimensional")
    if values.size != layer.in_features:
        raise ValueError(
            f"layer expects {layer.in_features} features, got {values.size}"
        )

    def task(rank):
        neurons = split_work(layer.out_features, workers, rank)
        weights = layer.weights[neurons.start : neurons.stop]
        biases = layer.biases[neurons.start : neurons.stop]
        return leaky_relu(weights @ values + biases)

    blocks = _run(workers, task)
    return _gather(blocks, (layer.out_features,))


def forward_parallel(cnn, workers):
    """Run ``cnn`` with every layer split among workers; store and return the output."""
    x = cnn.input_tensor()
    for layer in cnn.conv_layers:
        x = conv_forward_by_rows(x, layer, workers)
    v = flatten(x)
    for layer in cnn.fc_layers:
        v = fc_forward_parallel(v, layer, workers)
    if v.size == 0:
        raise ValueError("network produced an empty output")
    cnn.output = float(v[0])
    return cnn.output