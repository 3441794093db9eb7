# tinycnn

A small convolutional neural network for inference experiments.

A network is a stack of valid (unpadded) convolution layers with ReLU, followed by
a stack of fully connected layers with leaky ReLU (slope 0.01). The first value
of the last layer's output is the network's single output. Weights and biases
are drawn from a normal distribution. They can be saved to and loaded from a
compact binary file.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
tinycnn            # build a random network and run one forward pass
tinycnn save       # also save its parameters to the weights file
tinycnn load       # replace its parameters with those in the weights file
```

The network has `--conv-layers` convolution layers, each with 3 output channels
and a square kernel of `--kernel-size`, followed by fully connected layers whose
sizes start at `--hidden-dim` and halve down to 1. The input and all parameters
are drawn from a normal distribution with `--mean` and `--std`.

Options and their defaults:

| Option | Default |
| --- | --- |
| `--weights` | `./ckpts/cnn_weights.bin` |
| `--width` | 2048 |
| `--height` | 2048 |
| `--channels` | 3 |
| `--conv-layers` | 500 |
| `--kernel-size` | 5 |
| `--hidden-dim` | 128 |
| `--mean` | 0.0 |
| `--std` | 1.0 |
| `--workers` | none (serial pass) |

The defaults describe a very large network; for a quick run choose smaller
sizes, for example `tinycnn --width 64 --height 64 --conv-layers 3`.

The command prints the shape after each convolution layer and the sizes of each
fully connected layer, then the network output and the time the forward pass
took. The serial pass reports processor time; with `--workers N` the pass is
split among N workers and wall-clock time is reported.

`save` does not create the directory of the weights file; it must exist. After
`load`, the loaded layers must fit the input size, or the forward pass fails.
The command exits with status 2 for invalid sizes or worker counts, 1 when the
weights file cannot be read or written or the forward pass fails, and 0
otherwise.

## Library use

```python
import numpy as np
from tinycnn.model import CNN
from tinycnn.weights import save_weights, load_weights
from tinycnn.parallel import forward_parallel

cnn = CNN(input_width=16, input_height=16, input_channels=3)
cnn.input_data = np.random.default_rng(0).standard_normal(16 * 16 * 3).astype(np.float32)

cnn.add_conv_layer(3, 5, 3, 0.0, 1.0)     # out_channels, kernel_size, in_channels, mean, stddev
cnn.add_fc_layer(12 * 12 * 3, 4, 0.0, 1.0)
cnn.add_fc_layer(4, 1, 0.0, 1.0)

print(cnn.forward())

save_weights(cnn, "weights.bin")
load_weights(cnn, "weights.bin")

print(forward_parallel(cnn, 4))
```

`tinycnn.model` holds `Tensor3D` (channels x height x width, float32),
`ConvLayer`, `FullyConnectedLayer` and `CNN`, and the single layer operations
`conv_forward`, `maxpool_forward`, `flatten` and `fc_forward`, with the
activations `relu` and `leaky_relu`, and `rand_normal` for drawing one sample
from a normal distribution. A network holds at most 1000 convolution layers and
1000 fully connected layers. Mismatched sizes raise `ValueError`.

`tinycnn.parallel` splits a layer's output rows, channels or neurons among
workers with `split_work` and provides `conv_forward_by_rows`,
`conv_forward_by_channels` (which uses leaky ReLU), `maxpool_forward_by_rows`,
`fc_forward_parallel` and `forward_parallel`. Workers are threads in one
process. Their results are joined in worker order; for the row-split layers each
worker's block is channel-major over its own rows, so the data layout matches
the serial pass only with one worker or a single channel.

`tinycnn.cli.build_network` builds the network that the command runs, with
chosen sizes.

## Weight file format

All values are little-endian, 32 bits wide: signed integers for counts and
sizes, floats for parameters. The file starts with the number of convolution
layers. Each convolution layer then gives its input channels, output channels
and kernel size, followed by its weights and its biases. After those comes the
number of fully connected layers. Each one gives its input features and output
features, followed by its weights and its biases. A truncated file, a layer
count outside 0 to 1000 or a size that is not positive raises
`tinycnn.weights.WeightsFormatError`.

## What it does not do

The package only runs forward passes: there is no training. The parallel pass
runs on threads in a single process; it does not spread work across processes
or machines. Max pooling is available as a layer operation but is not part of
the network's forward pass.