"""
conftest.py
~~~~~~~~~~~

Shared fixtures and helpers for the convnet tests.
"""

import numpy as np
import pytest

from convnet import Dataset, FullyConnectedLayer, Network, Params, Partition
from convnet.layers import InputLayer


def wire(*layers, mb_size=1, dtype=np.float64):
    """Connect layers in order and allocate their storage, without a Network."""
    for prev, layer in zip(layers, layers[1:]):
        layer.set_predecessor(prev)
    for layer in layers:
        layer.allocate(mb_size, dtype)
    for layer, nxt in zip(layers[1:], layers[2:]):
        layer.set_successor(nxt)
    return layers


def separable_data(n, num_pixels=784, seed=0):
    """Random images labelled by the argmax of their first 10 pixels."""
    rng = np.random.default_rng(seed)
    images = rng.random((n, num_pixels))
    labels = np.argmax(images[:, :10], axis=1)
    return images, labels


@pytest.fixture
def params():
    return Params(learning_rate=0.5, lam=0.0, mb_size=4, num_epochs=1, seed=7,
                  dtype=np.float64, verbose=0)


@pytest.fixture
def input_layer():
    layer = InputLayer(3, 2)
    layer.allocate(2, np.float64)
    return layer


@pytest.fixture
def small_fc_network(params):
    """Input 2x2 -> FC(3, sigmoid) -> softmax(2)."""
    network = Network(params, [FullyConnectedLayer(3, 4)], input_shape=(2, 2), num_classes=2)
    yield network
    network.close()


@pytest.fixture
def separable_dataset():
    images, labels = separable_data(100)
    return Dataset(Partition(images, labels))
