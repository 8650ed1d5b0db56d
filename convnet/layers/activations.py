import numpy as np


class Sigmoid:
    name = "sigmoid"

    @staticmethod
    def compute(z):
        return 1.0 / (1.0 + np.exp(-z))

    @staticmethod
    def derivative(z):
        s = Sigmoid.compute(z)
        return s * (1.0 - s)


class ReLU:
    name = "relu"

    @staticmethod
    def compute(z):
        return np.maximum(0, z)

    @staticmethod
    def derivative(z):
        return (z > 0).astype(np.asarray(z).dtype)


ACTIVATIONS = {
    Sigmoid.name: Sigmoid,
    ReLU.name: ReLU,
}


def get_activation(activation):
    # Accept either a registered name or a strategy class.
    if isinstance(activation, str):
        try:
            return ACTIVATIONS[activation.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown activation {activation!r}, expected one of {sorted(ACTIVATIONS)}"
            ) from None
    if not (hasattr(activation, "compute") and hasattr(activation, "derivative")):
        raise ValueError(f"{activation!r} is not an activation strategy")
    return activation
