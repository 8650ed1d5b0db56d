"""
convnet
~~~~~~~

Feed-forward neural networks built from input, fully-connected,
convolutional, max-pooling and softmax layers, trained by mini-batch
stochastic gradient descent with hand-derived backpropagation.
"""

from .Params import Params
from .Network import Network
from .data import Dataset, Partition, load_mnist
from .errors import CompositionError, UnsupportedOperationError
from .layers import (
    Conv2D,
    FullyConnectedLayer,
    InputLayer,
    MaxPool2D,
    ReLU,
    Sigmoid,
    SoftmaxLayer,
)

__version__ = "1.0.0"

__all__ = [
    "Params",
    "Network",
    "Dataset",
    "Partition",
    "load_mnist",
    "CompositionError",
    "UnsupportedOperationError",
    "Conv2D",
    "FullyConnectedLayer",
    "InputLayer",
    "MaxPool2D",
    "ReLU",
    "Sigmoid",
    "SoftmaxLayer",
]
