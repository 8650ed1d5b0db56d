from .Layer import Layer
from .InputLayer import InputLayer
from .FullyConnectedLayer import FullyConnectedLayer
from .Conv2D import Conv2D
from .MaxPool2D import MaxPool2D
from .SoftmaxLayer import SoftmaxLayer
from .activations import ReLU, Sigmoid, get_activation

__all__ = [
    "Layer",
    "InputLayer",
    "FullyConnectedLayer",
    "Conv2D",
    "MaxPool2D",
    "SoftmaxLayer",
    "ReLU",
    "Sigmoid",
    "get_activation",
]
