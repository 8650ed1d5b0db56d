import numpy as np

from .Layer import Layer
from ..Neuron import conform, get_index
from ..errors import CompositionError


class MaxPool2D(Layer):
    """
    Non-overlapping max pooling over (pool_x, pool_y) windows of each depth
    slice. No weights, no weighted inputs and no errors of its own.

    Backwards, a request for the error of input (x, y, z) is forwarded to
    the successor at the pooled coordinate (x // pool_x, y // pool_y, z).
    By default every input of the window receives that error. With
    argmax_routing=True only the input that produced the max does; the
    others read zero.
    """

    def __init__(self, pool_shape, input_shape, argmax_routing=False):
        pool_x, pool_y = (int(d) for d in pool_shape)
        input_x, input_y, input_z = (int(d) for d in input_shape)
        if pool_x < 1 or pool_y < 1:
            raise CompositionError(f"Invalid pool size {pool_x}x{pool_y}")
        if input_x % pool_x != 0:
            raise CompositionError(f"Input width {input_x} not divisible by pool width {pool_x}")
        if input_y % pool_y != 0:
            raise CompositionError(f"Input height {input_y} not divisible by pool height {pool_y}")
        super().__init__((input_x // pool_x, input_y // pool_y, input_z))
        self.pool_shape = (pool_x, pool_y)
        self.input_shape = (input_x, input_y, input_z)
        self.argmax_routing = argmax_routing
        self.argmax = None  # (mb, out_x, out_y, z) flat offset inside the window

    def set_predecessor(self, layer):
        self._check_predecessor_size(layer, int(np.prod(self.input_shape)))
        self.predecessor = layer

    def set_successor(self, layer):
        self.successor = layer

    def allocate(self, mb_size, dtype=np.float32):
        super().allocate(mb_size, dtype)
        self.argmax = np.zeros((mb_size,) + self.shape, dtype=np.intp)

    def initialize_weights(self, rng):
        pass

    def _windows(self, slot):
        # (out_x, out_y, z, pool_x * pool_y)
        px, py = self.pool_shape
        ox, oy, oz = self.shape
        x = self.predecessor.read_activations(slot, self.input_shape)
        x = x.reshape(ox, px, oy, py, oz).transpose(0, 2, 4, 1, 3)
        return x.reshape(ox, oy, oz, px * py)

    def feed_forward(self, slot):
        windows = self._windows(slot)
        self.neurons.activations[slot] = windows.max(axis=-1)
        self.argmax[slot] = windows.argmax(axis=-1)

    # Pooling has no error terms of its own.
    def compute_backward_error(self, slot):
        pass

    def propagate_error_to_previous(self, slot):
        pass

    def end_batch(self, num_training_images, optimizer, batch_size=None):
        pass

    def _is_argmax(self, x, y, z, slot):
        px, py = self.pool_shape
        offset = (x % px) * py + (y % py)
        return self.argmax[slot, x // px, y // py, z] == offset

    def read_error(self, index, slot):
        # A 1D predecessor addresses the pooled input volume by flat index.
        index = self._check_index(index, int(np.prod(self.input_shape)))
        x, y, z = np.unravel_index(index, self.input_shape, order="F")
        return self.read_error_at(int(x), int(y), int(z), slot)

    def read_error_at(self, x, y, z, slot):
        self._check_coords((x, y, z), self.input_shape)
        self.neurons.check_slot(slot)
        successor = self._wired_successor()
        if self.argmax_routing and not self._is_argmax(x, y, z, slot):
            return 0.0
        px, py = self.pool_shape
        nx, ny, nz = x // px, y // py, z
        # If the next layer is 1D, map the pooled coordinate onto it.
        if successor.num_dims == 1:
            dim_x, dim_y, _ = self.shape
            return successor.read_error(get_index(nx, ny, nz, dim_x, dim_y), slot)
        return successor.read_error_at(nx, ny, nz, slot)

    def read_errors(self, slot, shape):
        self.neurons.check_slot(slot)
        px, py = self.pool_shape
        pooled = self._successor_errors(slot)
        errors = np.repeat(np.repeat(pooled, px, axis=0), py, axis=1)
        if self.argmax_routing:
            errors = errors * self._argmax_mask(slot)
        return conform(errors, shape)

    def _argmax_mask(self, slot):
        px, py = self.pool_shape
        ox, oy, oz = self.shape
        onehot = np.arange(px * py) == self.argmax[slot][..., None]  # (ox, oy, oz, px*py)
        mask = onehot.reshape(ox, oy, oz, px, py).transpose(0, 3, 1, 4, 2)
        return mask.reshape(self.input_shape)
