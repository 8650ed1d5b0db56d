import numpy as np

from .Layer import Layer
from .activations import Sigmoid, get_activation


class FullyConnectedLayer(Layer):
    trainable = True

    def __init__(self, size, input_size=None, activation=Sigmoid):
        # weights: (size, input_size), one row per neuron
        # bias: (size,)
        super().__init__((size,))
        self.input_size = input_size
        self.activation = get_activation(activation)
        self.weights = None
        self.bias = None

    def set_predecessor(self, layer):
        if self.input_size is not None:
            self._check_predecessor_size(layer, self.input_size)
        self.input_size = layer.size
        self.predecessor = layer

    def set_successor(self, layer):
        self.successor = layer

    def allocate(self, mb_size, dtype=np.float32):
        super().allocate(mb_size, dtype)
        self.weights = np.zeros((self.size, self.input_size), dtype=dtype)
        self.bias = np.zeros(self.size, dtype=dtype)
        self.bwd_errors = np.zeros((mb_size, self.input_size), dtype=dtype)

    def initialize_weights(self, rng):
        # N(0, 1) scaled by 1/sqrt(fan_in); bias N(0, 1) unscaled.
        # Drawn neuron by neuron so a seed always yields the same tensors.
        scale = np.sqrt(self.input_size)
        for i in range(self.size):
            self.weights[i] = rng.standard_normal(self.input_size) / scale
            self.bias[i] = rng.standard_normal()

    def _weighted_input(self, slot):
        x = self.predecessor.read_activations(slot, (self.input_size,))
        return self.weights @ x + self.bias

    def feed_forward(self, slot):
        z = self._weighted_input(slot)
        self.neurons.weighted_inputs[slot] = z
        self.neurons.activations[slot] = self.activation.compute(z)

    def compute_backward_error(self, slot):
        error = self._successor_errors(slot)
        error = error * self.activation.derivative(self.neurons.weighted_inputs[slot])
        self.neurons.errors[slot] = error

    def propagate_error_to_previous(self, slot):
        # component i: sum over this layer's neurons of weight[j][i] * error[j]
        self.bwd_errors[slot] = self.weights.T @ self.neurons.errors[slot]

    def gradients(self, batch_size=None):
        """Weight and bias gradients summed over the first batch_size slots."""
        n = self.neurons.mb_size if batch_size is None else batch_size
        errors = self.neurons.errors[:n]
        inputs = np.stack([
            self.predecessor.read_activations(mb, (self.input_size,)) for mb in range(n)
        ])
        return errors.T @ inputs, errors.sum(axis=0)

    def end_batch(self, num_training_images, optimizer, batch_size=None):
        n = self.neurons.mb_size if batch_size is None else batch_size
        dW, db = self.gradients(n)
        optimizer.step(self.weights, dW, n, num_training_images)
        optimizer.step(self.bias, db, n, num_training_images, decay=False)

    def sum_squared_weights(self):
        return float(np.sum(self.weights.astype(np.float64) ** 2))

    def params(self):
        return [self.weights, self.bias]
