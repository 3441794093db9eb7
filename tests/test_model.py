import numpy as np
import pytest

from tinycnn.model import (
    CNN,
    MAX_CONV_LAYERS,
    ConvLayer,
    FullyConnectedLayer,
    Tensor3D,
    conv_forward,
    fc_forward,
    flatten,
    leaky_relu,
    maxpool_forward,
    rand_normal,
    relu,
)


def _positive(shape, seed=0):
    rng = np.random.default_rng(seed)
    return (rng.random(shape) + 0.5).astype(np.float32)


def test_relu_scalars():
    assert relu(3.5) == 3.5
    assert relu(-2.0) == 0.0
    assert relu(0.0) == 0.0


def test_relu_array_keeps_positive_only():
    values = np.array([-1.0, 2.0, -3.0, 4.0], dtype=np.float32)
    assert relu(values).tolist() == [0.0, 2.0, 0.0, 4.0]


def test_leaky_relu():
    assert leaky_relu(2.5) == 2.5
    assert leaky_relu(-1.0) == pytest.approx(-0.01)


def test_rand_normal_zero_stddev_gives_mean():
    assert rand_normal(3.0, 0.0) == 3.0


def test_rand_normal_statistics():
    samples = np.array([rand_normal(0.0, 1.0) for _ in range(3000)])
    assert abs(samples.mean()) < 0.15
    assert abs(samples.std() - 1.0) < 0.15


def test_tensor_dimensions():
    tensor = Tensor3D(np.zeros((3, 4, 5)))
    assert (tensor.channels, tensor.height, tensor.width) == (3, 4, 5)
    assert tensor.data.dtype == np.float32


def test_tensor_from_flat_round_trip():
    values = np.arange(24, dtype=np.float32)
    tensor = Tensor3D.from_flat(4, 3, 2, values)
    assert tensor.data.shape == (2, 3, 4)
    assert np.array_equal(flatten(tensor), values)


def test_tensor_rejects_wrong_rank():
    with pytest.raises(ValueError):
        Tensor3D(np.zeros((3, 4)))


def test_conv_layer_rejects_wrong_weight_count():
    with pytest.raises(ValueError):
        ConvLayer(1, 1, 2, np.zeros(3), np.zeros(1))


def test_conv_identity_kernel_keeps_positive_input():
    data = _positive((2, 5, 6))
    weights = np.eye(2, dtype=np.float32).reshape(2, 2, 1, 1)
    layer = ConvLayer(2, 2, 1, weights, np.zeros(2))
    out = conv_forward(Tensor3D(data), layer)
    assert np.allclose(out.data, data)


def test_conv_output_shape():
    tensor = Tensor3D(_positive((1, 5, 6)))
    layer = ConvLayer(1, 4, 3, np.ones((4, 1, 3, 3)), np.zeros(4))
    out = conv_forward(tensor, layer)
    assert out.channels == layer.out_channels
    assert out.width == tensor.width - layer.kernel_size + 1
    assert out.height == tensor.height - layer.kernel_size + 1


def test_conv_sums_window():
    layer = ConvLayer(1, 1, 3, np.ones(9), np.zeros(1))
    out = conv_forward(Tensor3D(np.ones((1, 3, 3))), layer)
    assert out.data.shape == (1, 1, 1)
    assert out.data[0, 0, 0] == pytest.approx(9.0)


def test_conv_negative_bias_is_clipped_by_relu():
    layer = ConvLayer(1, 2, 2, np.zeros(8), -np.ones(2))
    out = conv_forward(Tensor3D(_positive((1, 4, 4))), layer)
    assert np.all(out.data == 0.0)


def test_conv_channel_mismatch():
    layer = ConvLayer(2, 1, 1, np.ones(2), np.zeros(1))
    with pytest.raises(ValueError):
        conv_forward(Tensor3D(np.ones((1, 3, 3))), layer)


def test_conv_kernel_too_large():
    layer = ConvLayer(1, 1, 4, np.ones(16), np.zeros(1))
    with pytest.raises(ValueError):
        conv_forward(Tensor3D(np.ones((1, 3, 3))), layer)


def test_maxpool_picks_block_maximum():
    data = np.arange(32, dtype=np.float32).reshape(2, 4, 4)
    out = maxpool_forward(Tensor3D(data), 2)
    assert np.array_equal(out.data, data[:, 1::2, 1::2])


def test_maxpool_crops_odd_sizes():
    tensor = Tensor3D(_positive((1, 5, 7)))
    out = maxpool_forward(tensor, 2)
    assert out.data.shape == (1, tensor.height // 2, tensor.width // 2)


def test_maxpool_floor():
    out = maxpool_forward(Tensor3D(np.full((1, 2, 2), -5e9)), 2)
    assert out.data[0, 0, 0] == np.float32(-1e9)


def test_maxpool_rejects_zero_pool():
    with pytest.raises(ValueError):
        maxpool_forward(Tensor3D(np.ones((1, 2, 2))), 0)


def test_flatten_is_channel_major():
    data = _positive((3, 2, 2))
    flat = flatten(Tensor3D(data))
    assert np.array_equal(flat[:4], data[0].ravel())
    assert np.array_equal(flat, data.ravel())


def test_fc_identity_and_leaky():
    layer = FullyConnectedLayer(3, 3, np.eye(3), np.zeros(3))
    vector = np.array([1.5, -2.0, 4.0], dtype=np.float32)
    out = fc_forward(vector, layer)
    assert out[0] == pytest.approx(1.5)
    assert out[1] == pytest.approx(-2.0 * 0.01)
    assert out[2] == pytest.approx(4.0)


def test_fc_size_mismatch():
    layer = FullyConnectedLayer(3, 1, np.ones(3), np.zeros(1))
    with pytest.raises(ValueError):
        fc_forward(np.ones(4), layer)


def test_add_layers_shapes():
    cnn = CNN()
    conv = cnn.add_conv_layer(4, 3, 2, 0.0, 1.0)
    fc = cnn.add_fc_layer(10, 5, 0.0, 1.0)
    assert conv.weights.shape == (4, 2, 3, 3)
    assert conv.biases.shape == (4,)
    assert fc.weights.shape == (5, 10)
    assert len(cnn.conv_layers) == 1 and len(cnn.fc_layers) == 1


def test_conv_layer_limit():
    cnn = CNN()
    layer = ConvLayer(1, 1, 1, np.ones(1), np.zeros(1))
    cnn.conv_layers = [layer] * MAX_CONV_LAYERS
    with pytest.raises(ValueError):
        cnn.add_conv_layer(1, 1, 1, 0.0, 1.0)


def test_forward_identity_network():
    cnn = CNN(1, 1, 1, np.array([2.0]))
    cnn.conv_layers.append(ConvLayer(1, 1, 1, np.ones(1), np.zeros(1)))
    cnn.fc_layers.append(FullyConnectedLayer(1, 1, np.ones(1), np.zeros(1)))
    assert cnn.forward() == pytest.approx(2.0)
    assert cnn.output == pytest.approx(2.0)


def test_forward_does_not_mutate_input():
    data = _positive(3 * 6 * 6)
    cnn = CNN(6, 6, 3, data.copy())
    cnn.add_conv_layer(2, 3, 3, 0.0, 1.0)
    cnn.add_fc_layer(2 * 4 * 4, 4, 0.0, 1.0)
    cnn.add_fc_layer(4, 1, 0.0, 1.0)
    result = cnn.forward()
    assert np.array_equal(cnn.input_data, data)
    assert np.isfinite(result)
    assert result == cnn.output


def test_forward_wrong_input_size():
    cnn = CNN(2, 2, 1, np.ones(3))
    with pytest.raises(ValueError):
        cnn.forward()


def test_forward_without_input():
    with pytest.raises(ValueError):
        CNN(2, 2, 1).forward()