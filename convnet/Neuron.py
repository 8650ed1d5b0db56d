import numpy as np


# 1D <-> 3D coordinate conversion. x is the fastest-varying axis, then y, then z.
def get_x(index, dim_x):
    return index % dim_x


def get_y(index, dim_x, dim_y):
    return (index // dim_x) % dim_y


def get_z(index, dim_x, dim_y):
    return index // (dim_x * dim_y)


def get_index(x, y, z, dim_x, dim_y):
    return (dim_x * dim_y) * z + dim_x * y + x


def flatten(volume):
    """Flatten an (x, y, z) volume so that position i holds get_x/get_y/get_z(i)."""
    return np.ravel(volume, order="F")


def conform(values, shape):
    """
    Re-address `values` to `shape` using the flat index mapping.
    A 1D buffer read by a 3D layer (or the reverse) keeps element i at
    flat index i on both sides.
    """
    shape = tuple(shape)
    if values.shape == shape:
        return values
    if values.size != int(np.prod(shape)):
        raise ValueError(
            f"Cannot map {values.size} values onto shape {shape}"
        )
    return np.reshape(flatten(values), shape, order="F")


class Neuron:
    """
    A view onto one unit of a layer. Each neuron can be addressed by a flat
    index or by (x, y, z), and exposes its weighted inputs, activations and
    errors as arrays with one entry per mini-batch slot.
    """

    __slots__ = ("index", "x", "y", "z", "weighted_inputs", "activations", "errors")

    def __init__(self, index, x, y, z, weighted_inputs, activations, errors):
        self.index = index
        self.x, self.y, self.z = x, y, z
        self.weighted_inputs = weighted_inputs
        self.activations = activations
        self.errors = errors

    def __repr__(self):
        return f"Neuron(index={self.index}, x={self.x}, y={self.y}, z={self.z})"


class Neurons:
    """
    Scratch storage for every neuron of a layer.

    weighted_inputs / activations / errors have shape (mb_size, *shape):
    slot m only ever holds values computed for the m-th sample of the
    mini-batch, so samples can be processed concurrently.
    """

    def __init__(self, shape, mb_size, dtype=np.float32):
        self.shape = tuple(int(d) for d in shape)
        if len(self.shape) not in (1, 3):
            raise ValueError(f"Neurons are 1D or 3D, got shape {self.shape}")
        if any(d <= 0 for d in self.shape):
            raise ValueError(f"Invalid neuron shape {self.shape}")
        self.mb_size = int(mb_size)
        full = (self.mb_size,) + self.shape
        self.weighted_inputs = np.zeros(full, dtype=dtype)
        self.activations = np.zeros(full, dtype=dtype)
        self.errors = np.zeros(full, dtype=dtype)

    @property
    def num_dims(self):
        return len(self.shape)

    @property
    def size(self):
        return int(np.prod(self.shape))

    def check_slot(self, slot):
        if not 0 <= slot < self.mb_size:
            raise IndexError(f"Mini-batch slot {slot} out of range [0, {self.mb_size})")

    def coords(self, index):
        """Flat index -> position tuple in the native shape."""
        if not 0 <= index < self.size:
            raise IndexError(f"Neuron index {index} out of range [0, {self.size})")
        if self.num_dims == 1:
            return (index,)
        dim_x, dim_y, _ = self.shape
        return (get_x(index, dim_x), get_y(index, dim_x, dim_y), get_z(index, dim_x, dim_y))

    def index_of(self, x, y, z):
        if self.num_dims != 3:
            raise IndexError("1D neurons cannot be addressed by (x, y, z)")
        for value, dim, axis in zip((x, y, z), self.shape, "xyz"):
            if not 0 <= value < dim:
                raise IndexError(f"Neuron {axis}={value} out of range [0, {dim})")
        dim_x, dim_y, _ = self.shape
        return get_index(x, y, z, dim_x, dim_y)

    def neuron(self, index):
        pos = self.coords(index)
        return self._view(index, pos)

    def neuron_at(self, x, y, z):
        index = self.index_of(x, y, z)
        return self._view(index, (x, y, z))

    def _view(self, index, pos):
        sel = (slice(None),) + pos
        x, y, z = pos if len(pos) == 3 else (None, None, None)
        return Neuron(
            index, x, y, z,
            self.weighted_inputs[sel],
            self.activations[sel],
            self.errors[sel],
        )
