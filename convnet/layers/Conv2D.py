import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .Layer import Layer
from .activations import Sigmoid, get_activation
from ..errors import CompositionError


class Conv2D(Layer):
    """
    Convolutional layer with `num_feature_maps` kernels shared across all
    spatial positions.

    Neuron (x, y, z) is column x, row y of feature map z. Weight
    [fm][a][b][c] multiplies input (x + a, y + b, c).
    """

    trainable = True

    def __init__(self, kernel_shape, input_shape, num_feature_maps=1, activation=Sigmoid):
        kernel_x, kernel_y, kernel_z = (int(d) for d in kernel_shape)
        input_x, input_y, input_z = (int(d) for d in input_shape)
        if kernel_z != input_z:
            raise CompositionError(
                f"Kernel depth {kernel_z} does not match input depth {input_z}"
            )
        if kernel_x > input_x or kernel_y > input_y:
            raise CompositionError(
                f"Kernel {kernel_x}x{kernel_y} larger than input {input_x}x{input_y}"
            )
        if num_feature_maps < 1:
            raise CompositionError(f"Need at least one feature map, got {num_feature_maps}")
        super().__init__(
            (input_x - kernel_x + 1, input_y - kernel_y + 1, int(num_feature_maps))
        )
        self.kernel_shape = (kernel_x, kernel_y, kernel_z)
        self.input_shape = (input_x, input_y, input_z)
        self.num_feature_maps = int(num_feature_maps)
        self.activation = get_activation(activation)
        self.weights = None  # (fm, kx, ky, kz)
        self.bias = None     # (fm,)

    def set_predecessor(self, layer):
        self._check_predecessor_size(layer, int(np.prod(self.input_shape)))
        self.predecessor = layer

    def set_successor(self, layer):
        self.successor = layer

    def allocate(self, mb_size, dtype=np.float32):
        super().allocate(mb_size, dtype)
        self.weights = np.zeros((self.num_feature_maps,) + self.kernel_shape, dtype=dtype)
        self.bias = np.zeros(self.num_feature_maps, dtype=dtype)
        self.bwd_errors = np.zeros((mb_size,) + self.input_shape, dtype=dtype)

    def initialize_weights(self, rng):
        scale = np.sqrt(np.prod(self.kernel_shape))
        for fm in range(self.num_feature_maps):
            self.weights[fm] = rng.standard_normal(self.kernel_shape) / scale
            self.bias[fm] = rng.standard_normal()

    # ----- helpers -----
    def _receptive_fields(self, slot):
        # (out_x, out_y, kz, kx, ky): window of input pixels for every output neuron
        x = self.predecessor.read_activations(slot, self.input_shape)
        return sliding_window_view(x, self.kernel_shape[:2], axis=(0, 1))

    def feed_forward(self, slot):
        fields = self._receptive_fields(slot)
        z = np.einsum("xycab,fabc->xyf", fields, self.weights) + self.bias
        self.neurons.weighted_inputs[slot] = z
        self.neurons.activations[slot] = self.activation.compute(z)

    def compute_backward_error(self, slot):
        # _successor_errors maps through flat indices when the successor is 1D
        error = self._successor_errors(slot)
        error = error * self.activation.derivative(self.neurons.weighted_inputs[slot])
        self.neurons.errors[slot] = error

    def propagate_error_to_previous(self, slot):
        """
        bwd[x][y][c] = sum over fm, a, b of weights[fm][a][b][c] * error[x-a][y-b][fm]
        for every (x-a, y-b) inside the output grid: a full correlation of the
        error with the kernel, computed as a valid correlation of the zero-padded
        error with the spatially flipped kernel.
        """
        kx, ky, _ = self.kernel_shape
        error = self.neurons.errors[slot]
        padded = np.pad(error, ((kx - 1, kx - 1), (ky - 1, ky - 1), (0, 0)))
        windows = sliding_window_view(padded, (kx, ky), axis=(0, 1))  # (ix, iy, fm, kx, ky)
        flipped = self.weights[:, ::-1, ::-1, :]
        self.bwd_errors[slot] = np.einsum("xyfab,fabc->xyc", windows, flipped)

    def gradients(self, batch_size=None):
        n = self.neurons.mb_size if batch_size is None else batch_size
        dW = np.zeros_like(self.weights)
        for mb in range(n):
            fields = self._receptive_fields(mb)
            dW += np.einsum("xycab,xyf->fabc", fields, self.neurons.errors[mb])
        db = self.neurons.errors[:n].sum(axis=(0, 1, 2))
        return dW, db

    def end_batch(self, num_training_images, optimizer, batch_size=None):
        n = self.neurons.mb_size if batch_size is None else batch_size
        dW, db = self.gradients(n)
        optimizer.step(self.weights, dW, n, num_training_images)
        optimizer.step(self.bias, db, n, num_training_images, decay=False)

    def sum_squared_weights(self):
        return float(np.sum(self.weights.astype(np.float64) ** 2))

    def params(self):
        return [self.weights, self.bias]
