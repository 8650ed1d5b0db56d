from ..layers.activations import Sigmoid, get_activation


class QuadraticLoss:
    def __init__(self, activation=Sigmoid):
        # activation whose derivative scales the output error
        self.activation = get_activation(activation)

    def compute(self, activation, label):
        return 0.5 * (activation - label) ** 2

    def delta(self, z, activation, label):
        return (activation - label) * self.activation.derivative(z)
