class CompositionError(RuntimeError):
    """A layer chain was composed or driven in a way its layers do not support."""


class UnsupportedOperationError(CompositionError, NotImplementedError):
    """Raised when a layer variant is asked for an operation it does not have."""

    def __init__(self, layer, operation):
        self.layer = layer
        self.operation = operation
        super().__init__(f"{type(layer).__name__} does not support {operation}()")
