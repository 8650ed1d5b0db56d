import numpy as np

from .FullyConnectedLayer import FullyConnectedLayer
from ..errors import UnsupportedOperationError
from ..loss.CrossEntropyLoss import CrossEntropyLoss


class SoftmaxLayer(FullyConnectedLayer):
    """
    Output layer: fully-connected weights feeding a normalised exponential.
    It is always last in the chain, so its error comes from the cost
    function rather than from a successor.
    """

    def __init__(self, size, input_size=None, loss=None):
        super().__init__(size, input_size=input_size)
        self.loss = CrossEntropyLoss() if loss is None else loss

    def set_successor(self, layer):
        raise UnsupportedOperationError(self, "set_successor")

    def feed_forward(self, slot):
        # Weighted inputs for every neuron first, then normalise.
        z = self._weighted_input(slot)
        self.neurons.weighted_inputs[slot] = z
        e = np.exp(z - np.max(z))  # shift for stability, ratio is unchanged
        self.neurons.activations[slot] = e / np.sum(e)

    def compute_backward_error(self, slot):
        raise UnsupportedOperationError(self, "compute_backward_error")

    def target(self, label):
        if not 0 <= int(label) < self.size:
            raise ValueError(f"Label {label} out of range for {self.size} output neurons")
        y = np.zeros(self.size, dtype=self.neurons.activations.dtype)
        y[int(label)] = 1.0
        return y

    def compute_output_error(self, label, slot):
        self.neurons.check_slot(slot)
        y = self.target(label)
        self.neurons.errors[slot] = self.loss.delta(
            self.neurons.weighted_inputs[slot], self.neurons.activations[slot], y
        )

    def compute_output_cost(self, label, slot):
        self.neurons.check_slot(slot)
        y = self.target(label)
        return float(np.sum(self.loss.compute(self.neurons.activations[slot], y)))

    def read_output(self, slot):
        # np.argmax picks the first maximum on ties
        return int(np.argmax(self.activations(slot)))
