import numpy as np


class CrossEntropyLoss:
    def __init__(self, eps=1e-12):
        self.eps = eps

    def compute(self, activation, label):
        """
        Per-neuron cost -y * ln(a).
        activation: softmax probabilities, label: one-hot target of the same shape.
        Summed over the output neurons this is -ln(a[true class]).
        """
        return -label * np.log(np.maximum(activation, self.eps))

    def delta(self, z, activation, label):
        """
        dC/dz = a - y
        The fused softmax + cross-entropy gradient: the activation derivative
        cancels, so z is unused.
        """
        return activation - label
