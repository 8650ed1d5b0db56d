import numpy as np

from ..Neuron import Neurons, conform
from ..errors import CompositionError, UnsupportedOperationError


class Layer:
    """
    Base class for every layer of the chain.

    A layer owns its neuron storage (allocated once the mini-batch size is
    known) and holds non-owning references to its predecessor and successor.
    Subclasses override the operations they support; everything else fails
    with UnsupportedOperationError.
    """

    trainable = False

    def __init__(self, shape):
        self.shape = tuple(int(d) for d in shape)
        self.predecessor = None
        self.successor = None
        self.neurons = None
        # propagated error for the predecessor, one row per mini-batch slot
        self.bwd_errors = None

    # ----- wiring -----
    def set_predecessor(self, layer):
        raise UnsupportedOperationError(self, "set_predecessor")

    def set_successor(self, layer):
        raise UnsupportedOperationError(self, "set_successor")

    def allocate(self, mb_size, dtype=np.float32):
        self.neurons = Neurons(self.shape, mb_size, dtype)

    # ----- numerics -----
    def initialize_weights(self, rng):
        raise UnsupportedOperationError(self, "initialize_weights")

    def feed_forward(self, slot):
        raise UnsupportedOperationError(self, "feed_forward")

    def compute_backward_error(self, slot):
        raise UnsupportedOperationError(self, "compute_backward_error")

    def propagate_error_to_previous(self, slot):
        raise UnsupportedOperationError(self, "propagate_error_to_previous")

    def end_batch(self, num_training_images, optimizer, batch_size=None):
        raise UnsupportedOperationError(self, "end_batch")

    def sum_squared_weights(self):
        return 0.0

    # ----- error lookup by the successor -----
    def read_error(self, index, slot):
        buf = self._bwd_buffer(slot)
        return float(conform(buf, (buf.size,))[self._check_index(index, buf.size)])

    def read_error_at(self, x, y, z, slot):
        buf = self._bwd_buffer(slot)
        if buf.ndim != 3:
            buf = conform(buf, self.predecessor.shape)
        if buf.ndim != 3:
            raise IndexError(f"{type(self).__name__} propagates a 1D error buffer")
        return float(buf[self._check_coords((x, y, z), buf.shape)])

    def read_errors(self, slot, shape):
        """Whole propagated-error buffer for `slot`, addressed as `shape`."""
        return conform(self._bwd_buffer(slot), shape)

    def _bwd_buffer(self, slot):
        if self.bwd_errors is None:
            raise CompositionError(f"{type(self).__name__} has no propagated error buffer")
        self.neurons.check_slot(slot)
        return self.bwd_errors[slot]

    # ----- neuron access -----
    def neuron(self, index):
        return self._storage().neuron(index)

    def neuron_at(self, x, y, z):
        return self._storage().neuron_at(x, y, z)

    def activations(self, slot):
        storage = self._storage()
        storage.check_slot(slot)
        return storage.activations[slot]

    def read_activations(self, slot, shape):
        """Activations of `slot` addressed as `shape` (1D/3D bridging)."""
        return conform(self.activations(slot), shape)

    def _storage(self):
        if self.neurons is None:
            raise CompositionError(f"{type(self).__name__} used before allocation")
        return self.neurons

    def _wired_successor(self):
        if self.successor is None:
            raise CompositionError(f"{type(self).__name__} has no successor")
        return self.successor

    def _successor_errors(self, slot):
        # The successor's propagated error for every neuron of this layer.
        return self._wired_successor().read_errors(slot, self.shape)

    def _check_predecessor_size(self, layer, expected):
        if layer.size != expected:
            raise CompositionError(
                f"{type(self).__name__} expects {expected} inputs, "
                f"but {type(layer).__name__} has {layer.size} neurons"
            )

    @staticmethod
    def _check_index(index, size):
        if not 0 <= index < size:
            raise IndexError(f"Index {index} out of range [0, {size})")
        return index

    @staticmethod
    def _check_coords(coords, shape):
        for value, dim in zip(coords, shape):
            if not 0 <= value < dim:
                raise IndexError(f"Coordinate {coords} out of range for shape {shape}")
        return tuple(coords)

    # ----- shape -----
    @property
    def num_dims(self):
        return len(self.shape)

    def dim(self, i):
        if not 0 <= i < self.num_dims:
            raise IndexError(f"Dimension {i} out of range for a {self.num_dims}D layer")
        return self.shape[i]

    @property
    def size(self):
        return int(np.prod(self.shape))

    def __repr__(self):
        return f"{type(self).__name__}(shape={self.shape})"
