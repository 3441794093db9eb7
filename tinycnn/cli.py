"""Command line entry point: build a random network and time its forward pass."""

from __future__ import annotations

import argparse
import sys
import time

import numpy as np

from tinycnn.model import CNN
from tinycnn.parallel import forward_parallel
from tinycnn.weights import WeightsFormatError, load_weights, save_weights

CONV_OUT_CHANNELS = 3
MAX_POOL_STRIDE = 1
DEFAULT_WEIGHTS = "./ckpts/cnn_weights.bin"


def _conv_shapes(input_width, input_height, num_conv_layers, kernel_size):
    """Yield the (width, height, channels) after each convolution layer."""
    width, height = input_width, input_height
    for _ in range(num_conv_layers):
        width = (width - kernel_size + 1) // MAX_POOL_STRIDE
        height = (height - kernel_size + 1) // MAX_POOL_STRIDE
        yield width, height, CONV_OUT_CHANNELS


def _fc_dims(flatten_size, hidden_dim):
    """Yield (in_dim, out_dim) for dense layers that halve down to one."""
    in_dim = flatten_size
    while hidden_dim >= 1:
        yield in_dim, hidden_dim
        in_dim = hidden_dim
        hidden_dim //= 2


def build_network(
    input_width,
    input_height,
    input_channels,
    num_conv_layers,
    kernel_size,
    hidden_dim,
    mean,
    stddev,
):
    """Create a network with random input and random layer parameters."""
    if min(input_width, input_height, input_channels) <= 0:
        raise ValueError("input dimensions must be positive")
    if kernel_size <= 0:
        raise ValueError("kernel size must be positive")
    if num_conv_layers < 0:
        raise ValueError("number of convolution layers must not be negative")

    rng = np.random.default_rng()
    volume = input_width * input_height * input_channels
    cnn = CNN(
        input_width=input_width,
        input_height=input_height,
        input_channels=input_channels,
        input_data=rng.normal(mean, stddev, volume).astype(np.float32),
    )

    width, height, channels = input_width, input_height, input_channels
    for width, height, out_channels in _conv_shapes(
        input_width, input_height, num_conv_layers, kernel_size
    ):
        if width <= 0 or height <= 0:
            raise ValueError("kernel is larger than the input of a convolution layer")
        cnn.add_conv_layer(out_channels, kernel_size, channels, mean, stddev)
        channels = out_channels

    for in_dim, out_dim in _fc_dims(width * height * channels, hidden_dim):
        cnn.add_fc_layer(in_dim, out_dim, mean, stddev)
    return cnn


def _parser():
    parser = argparse.ArgumentParser(
        prog="tinycnn",
        description="Build a random convolutional network and time its forward pass.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=("load", "save"),
        help="load parameters from the weights file, or save them to it",
    )
    parser.add_argument("--weights", default=DEFAULT_WEIGHTS, help="weights file")
    parser.add_argument("--width", type=int, default=2048)
    parser.add_argument("--height", type=int, default=2048)
    parser.add_argument("--channels", type=int, default=3)
    parser.add_argument("--conv-layers", type=int, default=500)
    parser.add_argument("--kernel-size", type=int, default=5)
    parser.add_argument("--hidden-dim", type=int, default=128)
    parser.add_argument("--mean", type=float, default=0.0)
    parser.add_argument("--std", type=float, default=1.0)
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="split each layer among this many workers",
    )
    return parser


def main(argv=None):
    """Run the command and return its exit status."""
    args = _parser().parse_args(argv)
    if args.workers is not None and args.workers <= 0:
        print("error: number of workers must be positive", file=sys.stderr)
        return 2

    try:
        cnn = build_network(
            args.width,
            args.height,
            args.channels,
            args.conv_layers,
            args.kernel_size,
            args.hidden_dim,
            args.mean,
            args.std,
        )
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    for index, layer in enumerate(cnn.conv_layers, start=1):
        pass
    shapes = _conv_shapes(args.width, args.height, len(cnn.conv_layers), args.kernel_size)
    for index, (width, height, channels) in enumerate(shapes, start=1):
        print(f"After conv layer {index}: {width} x {height} x {channels}")
    for index, layer in enumerate(cnn.fc_layers, start=1):
        print(
            f"Vector after FC layer {index}: {layer.in_features} -> {layer.out_features}"
        )

    try:
        if args.mode == "load":
            load_weights(cnn, args.weights)
        elif args.mode == "save":
            save_weights(cnn, args.weights)
    except (OSError, WeightsFormatError) as exc:
        print(f"error: {args.weights}: {exc}", file=sys.stderr)
        return 1

    try:
        if args.workers is None:
            start = time.process_time()
            output = cnn.forward()
            print(f"CNN Output: {output:f}")
            elapsed = time.process_time() - start
            print(f"Elapsed time: {elapsed:.6f} seconds")
        else:
            start = time.perf_counter()
            output = forward_parallel(cnn, args.workers)
            elapsed = time.perf_counter() - start
            print(f"Final CNN output using {args.workers} workers: {output:f}")
            print(f"Elapsed time using {args.workers} workers: {elapsed:.6f} seconds")
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())