from .CrossEntropyLoss import CrossEntropyLoss
from .QuadraticLoss import QuadraticLoss


def get_loss(name):
    if name == "cross_entropy":
        return CrossEntropyLoss()
    if name == "quadratic":
        return QuadraticLoss()
    raise ValueError(f"Unknown cost {name!r}")


__all__ = [
    "CrossEntropyLoss",
    "QuadraticLoss",
    "get_loss",
]
