"""
test_layers.py
~~~~~~~~~~~~~~

Shape, forward and backward contracts of every layer variant, and the
operations each variant must refuse.
"""

import numpy as np
import pytest

from convnet import CompositionError, UnsupportedOperationError
from convnet.layers import (
    Conv2D,
    FullyConnectedLayer,
    InputLayer,
    MaxPool2D,
    ReLU,
    Sigmoid,
    SoftmaxLayer,
)
from convnet.Neuron import conform
from convnet.optimizer import SGDOptimizer

from conftest import wire


class StubSuccessor(FullyConnectedLayer):
    """A 1D successor whose propagated error buffer is set directly by the test."""

    def __init__(self, errors):
        super().__init__(1)
        self._errors = np.asarray(errors, dtype=np.float64)

    def read_errors(self, slot, shape):
        return conform(self._errors, shape)

    def read_error(self, index, slot):
        return float(self._errors[index])


@pytest.mark.unit
class TestShapes:

    def test_input_layer_shape(self):
        layer = InputLayer(28, 28)
        assert layer.shape == (28, 28, 1)
        assert layer.size == 784
        assert layer.num_dims == 3
        assert layer.dim(2) == 1

    def test_fully_connected_shape(self):
        layer = FullyConnectedLayer(30, 784)
        assert layer.num_dims == 1
        assert layer.size == 30
        assert layer.dim(0) == 30
        with pytest.raises(IndexError):
            layer.dim(1)

    @pytest.mark.parametrize("kernel,inp,fms", [
        ((5, 5, 1), (28, 28, 1), 1),
        ((5, 5, 1), (28, 28, 1), 6),
        ((3, 2, 4), (7, 9, 4), 3),
    ])
    def test_conv_shape(self, kernel, inp, fms):
        layer = Conv2D(kernel, inp, num_feature_maps=fms)
        assert layer.shape == (inp[0] - kernel[0] + 1, inp[1] - kernel[1] + 1, fms)
        assert layer.size == (inp[0] - kernel[0] + 1) * (inp[1] - kernel[1] + 1) * fms

    @pytest.mark.parametrize("pool,inp", [((2, 2), (24, 24, 1)), ((2, 3), (8, 9, 4))])
    def test_pool_shape(self, pool, inp):
        layer = MaxPool2D(pool, inp)
        assert layer.shape == (inp[0] // pool[0], inp[1] // pool[1], inp[2])
        assert layer.size == (inp[0] // pool[0]) * (inp[1] // pool[1]) * inp[2]


@pytest.mark.unit
class TestCompositionContracts:

    def test_conv_kernel_depth_must_match_input_depth(self):
        with pytest.raises(CompositionError):
            Conv2D((3, 3, 2), (8, 8, 1))

    def test_conv_kernel_larger_than_input(self):
        with pytest.raises(CompositionError):
            Conv2D((9, 3, 1), (8, 8, 1))

    @pytest.mark.parametrize("inp", [(5, 4, 1), (4, 5, 1)])
    def test_pool_requires_divisible_input(self, inp):
        with pytest.raises(CompositionError):
            MaxPool2D((2, 2), inp)

    def test_fully_connected_input_size_mismatch(self):
        with pytest.raises(CompositionError):
            FullyConnectedLayer(10, 100).set_predecessor(InputLayer(28, 28))

    def test_conv_input_size_mismatch(self):
        with pytest.raises(CompositionError):
            Conv2D((3, 3, 1), (10, 10, 1)).set_predecessor(InputLayer(28, 28))

    def test_pool_input_size_mismatch(self):
        with pytest.raises(CompositionError):
            MaxPool2D((2, 2), (4, 4, 1)).set_predecessor(InputLayer(6, 6))

    def test_use_before_allocation(self):
        with pytest.raises(CompositionError):
            FullyConnectedLayer(3).neuron(0)

    def test_unsupported_error_is_also_not_implemented(self):
        with pytest.raises(NotImplementedError):
            InputLayer(2, 2).feed_forward(0)


@pytest.mark.unit
class TestUnsupportedOperations:

    @pytest.mark.parametrize("operation,args", [
        ("initialize_weights", (np.random.default_rng(0),)),
        ("feed_forward", (0,)),
        ("compute_backward_error", (0,)),
        ("propagate_error_to_previous", (0,)),
        ("end_batch", (10, SGDOptimizer())),
        ("set_predecessor", (None,)),
        ("set_successor", (None,)),
        ("read_error", (0, 0)),
        ("read_error_at", (0, 0, 0, 0)),
    ])
    def test_input_layer_refuses(self, input_layer, operation, args):
        with pytest.raises(UnsupportedOperationError) as excinfo:
            getattr(input_layer, operation)(*args)
        assert excinfo.value.operation == operation

    def test_softmax_has_no_successor(self):
        with pytest.raises(UnsupportedOperationError):
            SoftmaxLayer(10).set_successor(FullyConnectedLayer(3))

    def test_softmax_has_no_incoming_error(self):
        inp, out = wire(InputLayer(2, 1), SoftmaxLayer(2))
        with pytest.raises(UnsupportedOperationError):
            out.compute_backward_error(0)


@pytest.mark.unit
class TestInputLayer:

    def test_set_sample_maps_row_major_pixels(self, input_layer):
        # 3 wide, 2 high: pixel i -> (i % 3, i // 3, 0)
        input_layer.set_sample(np.arange(6.0), 1)
        assert input_layer.neuron_at(2, 0, 0).activations[1] == 2.0
        assert input_layer.neuron_at(0, 1, 0).activations[1] == 3.0
        assert input_layer.neuron(5).activations[1] == 5.0
        # the other slot is untouched
        assert np.all(input_layer.activations(0) == 0.0)

    def test_set_sample_wrong_length(self, input_layer):
        with pytest.raises(ValueError):
            input_layer.set_sample(np.zeros(5), 0)

    def test_set_sample_bad_slot(self, input_layer):
        with pytest.raises(IndexError):
            input_layer.set_sample(np.zeros(6), 2)


@pytest.mark.unit
class TestFullyConnectedLayer:

    def _layer(self, activation=Sigmoid):
        inp, fc = wire(InputLayer(3, 1), FullyConnectedLayer(2, 3, activation=activation))
        fc.weights[...] = [[1.0, -1.0, 0.5], [0.0, 2.0, 1.0]]
        fc.bias[...] = [0.1, -0.2]
        inp.set_sample([1.0, 2.0, 3.0], 0)
        return inp, fc

    def test_feed_forward(self):
        _, fc = self._layer()
        fc.feed_forward(0)
        z = np.array([1.0 - 2.0 + 1.5 + 0.1, 4.0 + 3.0 - 0.2])
        np.testing.assert_allclose(fc.neurons.weighted_inputs[0], z)
        np.testing.assert_allclose(fc.neurons.activations[0], 1.0 / (1.0 + np.exp(-z)))

    def test_relu_activation(self):
        _, fc = self._layer(activation=ReLU)
        fc.weights[0] = [-1.0, -1.0, -1.0]
        fc.feed_forward(0)
        assert fc.neurons.activations[0, 0] == 0.0
        assert fc.neurons.activations[0, 1] == pytest.approx(6.8)

    def test_backward_error_uses_successor_and_derivative(self):
        inp, fc = self._layer()
        fc.set_successor(StubSuccessor([0.5, -2.0]))
        fc.feed_forward(0)
        fc.compute_backward_error(0)
        z = fc.neurons.weighted_inputs[0]
        expected = np.array([0.5, -2.0]) * Sigmoid.derivative(z)
        np.testing.assert_allclose(fc.neurons.errors[0], expected)

    def test_propagate_error_to_previous(self):
        _, fc = self._layer()
        fc.neurons.errors[0] = [1.0, 2.0]
        fc.propagate_error_to_previous(0)
        # component i = sum_j weight[j][i] * error[j]
        np.testing.assert_allclose(fc.bwd_errors[0], [1.0, 3.0, 2.5])
        assert fc.read_error(1, 0) == pytest.approx(3.0)
        with pytest.raises(IndexError):
            fc.read_error(3, 0)

    def test_end_batch_decay_then_subtract(self):
        inp, fc = wire(InputLayer(2, 1), FullyConnectedLayer(1, 2), mb_size=2)
        fc.weights[...] = [[1.0, 2.0]]
        fc.bias[...] = [0.5]
        inp.set_sample([1.0, 0.0], 0)
        inp.set_sample([0.0, 1.0], 1)
        fc.neurons.errors[:, 0] = [0.2, 0.4]
        fc.end_batch(100, SGDOptimizer(lr=0.5, lam=10.0))
        decay = 1.0 - 0.5 * (10.0 / 100)
        grad = np.array([0.2, 0.4]) * 0.5 / 2
        np.testing.assert_allclose(fc.weights[0], np.array([1.0, 2.0]) * decay - grad)
        # bias has no decay term
        assert fc.bias[0] == pytest.approx(0.5 - 0.5 * (0.2 + 0.4) / 2)

    def test_initialization_scale(self):
        inp, fc = wire(InputLayer(40, 40), FullyConnectedLayer(50, 1600))
        fc.initialize_weights(np.random.default_rng(3))
        # weights ~ N(0, 1/1600), biases ~ N(0, 1)
        assert np.std(fc.weights) == pytest.approx(1 / 40, rel=0.05)
        assert 0.5 < np.std(fc.bias) < 1.5


@pytest.mark.unit
class TestConv2D:

    def test_all_ones_kernel_on_constant_input(self):
        inp, conv = wire(InputLayer(5, 5), Conv2D((3, 3, 1), (5, 5, 1)))
        conv.weights[...] = 1.0
        conv.bias[...] = 0.0
        inp.set_sample(np.full(25, 0.25), 0)
        conv.feed_forward(0)
        assert conv.neurons.weighted_inputs[0].shape == (3, 3, 1)
        np.testing.assert_allclose(conv.neurons.weighted_inputs[0], 9 * 0.25)

    def test_feed_forward_matches_direct_sum(self):
        rng = np.random.default_rng(1)
        inp, conv = wire(InputLayer(6, 5), Conv2D((3, 2, 1), (6, 5, 1), num_feature_maps=2))
        conv.initialize_weights(rng)
        inp.set_sample(rng.random(30), 0)
        conv.feed_forward(0)
        for fm in range(2):
            for x in range(4):
                for y in range(4):
                    total = conv.bias[fm]
                    for a in range(3):
                        for b in range(2):
                            total += (inp.neuron_at(x + a, y + b, 0).activations[0]
                                      * conv.weights[fm, a, b, 0])
                    assert conv.neuron_at(x, y, fm).weighted_inputs[0] == pytest.approx(total)

    def test_propagate_is_full_correlation(self):
        rng = np.random.default_rng(2)
        inp, conv = wire(InputLayer(5, 4), Conv2D((2, 3, 1), (5, 4, 1), num_feature_maps=2))
        conv.initialize_weights(rng)
        conv.neurons.errors[0] = rng.standard_normal(conv.shape)
        conv.propagate_error_to_previous(0)
        ox, oy, _ = conv.shape
        for x in range(5):
            for y in range(4):
                expected = 0.0
                for fm in range(2):
                    for a in range(2):
                        for b in range(3):
                            if 0 <= x - a < ox and 0 <= y - b < oy:
                                expected += conv.weights[fm, a, b, 0] * conv.neurons.errors[0, x - a, y - b, fm]
                assert conv.read_error_at(x, y, 0, 0) == pytest.approx(expected)

    def test_backward_error_from_1d_successor(self):
        inp, conv = wire(InputLayer(4, 4), Conv2D((3, 3, 1), (4, 4, 1), num_feature_maps=2))
        conv.initialize_weights(np.random.default_rng(0))
        inp.set_sample(np.linspace(0, 1, 16), 0)
        conv.feed_forward(0)
        stub = StubSuccessor(np.arange(conv.size, dtype=float))
        conv.set_successor(stub)
        conv.compute_backward_error(0)
        # successor error for (x, y, z) is read at flat index x + 2*y + 4*z
        for x in range(2):
            for y in range(2):
                for z in range(2):
                    n = conv.neuron_at(x, y, z)
                    expected = stub.read_error(x + 2 * y + 4 * z, 0) * Sigmoid.derivative(n.weighted_inputs[0])
                    assert n.errors[0] == pytest.approx(expected)

    def test_initialization_scale(self):
        inp, conv = wire(InputLayer(30, 30), Conv2D((5, 5, 1), (30, 30, 1), num_feature_maps=400))
        conv.initialize_weights(np.random.default_rng(4))
        assert np.std(conv.weights) == pytest.approx(1 / 5, rel=0.05)


@pytest.mark.unit
class TestMaxPool2D:

    def _pool(self, argmax_routing=False, mb_size=1):
        rng = np.random.default_rng(5)
        inp, pool = wire(InputLayer(4, 6), MaxPool2D((2, 3), (4, 6, 1), argmax_routing=argmax_routing),
                         mb_size=mb_size)
        for slot in range(mb_size):
            inp.set_sample(rng.random(24), slot)
        return inp, pool

    def test_output_is_window_max(self):
        inp, pool = self._pool(mb_size=2)
        for slot in range(2):
            pool.feed_forward(slot)
            for x in range(2):
                for y in range(2):
                    window = [inp.neuron_at(2 * x + a, 3 * y + b, 0).activations[slot]
                              for a in range(2) for b in range(3)]
                    out = pool.neuron_at(x, y, 0).activations[slot]
                    assert out <= max(window)
                    assert out in window
                    assert out == max(window)

    def test_no_parameters(self):
        inp, pool = self._pool()
        pool.initialize_weights(np.random.default_rng(0))
        pool.end_batch(10, SGDOptimizer())
        assert pool.sum_squared_weights() == 0.0
        assert not pool.trainable

    def test_pass_through_routes_error_to_every_window_input(self):
        inp, pool = self._pool()
        pool.feed_forward(0)
        stub = StubSuccessor(np.arange(1.0, 5.0))
        pool.set_successor(stub)
        for x in range(4):
            for y in range(6):
                expected = stub.read_error((x // 2) + 2 * (y // 3), 0)
                assert pool.read_error_at(x, y, 0, 0) == expected
        # vectorized and scalar lookups agree
        errors = pool.read_errors(0, (4, 6, 1))
        for x in range(4):
            for y in range(6):
                assert errors[x, y, 0] == pool.read_error_at(x, y, 0, 0)

    def test_argmax_routing_only_reaches_max_input(self):
        inp, pool = self._pool(argmax_routing=True)
        pool.feed_forward(0)
        stub = StubSuccessor(np.arange(1.0, 5.0))
        pool.set_successor(stub)
        errors = pool.read_errors(0, (4, 6, 1))
        for x in range(2):
            for y in range(2):
                window = {(2 * x + a, 3 * y + b) for a in range(2) for b in range(3)}
                best = max(window, key=lambda p: inp.neuron_at(p[0], p[1], 0).activations[0])
                for p in window:
                    expected = stub.read_error(x + 2 * y, 0) if p == best else 0.0
                    assert pool.read_error_at(p[0], p[1], 0, 0) == expected
                    assert errors[p[0], p[1], 0] == expected

    def test_read_error_by_flat_index(self):
        inp, pool = self._pool()
        pool.feed_forward(0)
        pool.set_successor(StubSuccessor(np.arange(1.0, 5.0)))
        # flat index 13 of a 4x6x1 volume is (1, 3, 0)
        assert pool.read_error(13, 0) == pool.read_error_at(1, 3, 0, 0)

    def test_read_error_out_of_range(self):
        inp, pool = self._pool()
        pool.set_successor(StubSuccessor(np.zeros(4)))
        with pytest.raises(IndexError):
            pool.read_error_at(4, 0, 0, 0)

    @pytest.mark.parametrize("argmax_routing", [False, True])
    def test_unwired_successor(self, argmax_routing):
        inp, pool = self._pool(argmax_routing=argmax_routing)
        pool.feed_forward(0)
        with pytest.raises(CompositionError):
            pool.read_error_at(0, 0, 0, 0)
        with pytest.raises(CompositionError):
            pool.read_error(5, 0)
        with pytest.raises(CompositionError):
            pool.read_errors(0, (4, 6, 1))


@pytest.mark.unit
class TestSoftmaxLayer:

    def _softmax(self, size=4, inputs=3):
        rng = np.random.default_rng(6)
        inp, out = wire(InputLayer(inputs, 1), SoftmaxLayer(size), mb_size=2)
        out.initialize_weights(rng)
        return inp, out

    @pytest.mark.parametrize("scale", [0.01, 1.0, 50.0])
    def test_activations_sum_to_one(self, scale):
        inp, out = self._softmax()
        out.weights *= scale
        for slot, pixels in enumerate(([0.1, 0.9, 0.3], [1.0, 1.0, 0.0])):
            inp.set_sample(pixels, slot)
            out.feed_forward(slot)
            assert np.sum(out.activations(slot)) == pytest.approx(1.0)
            assert np.all(np.isfinite(out.activations(slot)))

    def test_normalized_exponential(self):
        inp, out = self._softmax()
        inp.set_sample([0.2, 0.4, 0.6], 0)
        out.feed_forward(0)
        z = out.neurons.weighted_inputs[0]
        np.testing.assert_allclose(out.activations(0), np.exp(z) / np.sum(np.exp(z)))

    def test_read_output_argmax_first_on_ties(self):
        inp, out = self._softmax()
        out.weights[...] = 0.0
        out.bias[...] = [0.0, 1.0, 1.0, 0.5]
        inp.set_sample([0.2, 0.4, 0.6], 0)
        out.feed_forward(0)
        assert out.read_output(0) == 1
        out.bias[...] = 0.0
        out.feed_forward(0)
        assert out.read_output(0) == 0

    def test_output_error_is_activation_minus_target(self):
        inp, out = self._softmax()
        inp.set_sample([0.2, 0.4, 0.6], 1)
        out.feed_forward(1)
        out.compute_output_error(2, 1)
        expected = out.activations(1).copy()
        expected[2] -= 1.0
        np.testing.assert_allclose(out.neurons.errors[1], expected)

    def test_output_cost_and_bad_label(self):
        inp, out = self._softmax()
        inp.set_sample([0.2, 0.4, 0.6], 0)
        out.feed_forward(0)
        assert out.compute_output_cost(3, 0) == pytest.approx(-np.log(out.activations(0)[3]))
        with pytest.raises(ValueError):
            out.compute_output_cost(4, 0)

    def test_sum_squared_weights(self):
        inp, out = self._softmax()
        out.weights[...] = 2.0
        assert out.sum_squared_weights() == pytest.approx(4 * 3 * 4.0)
