import numpy as np

from .Layer import Layer
from ..errors import UnsupportedOperationError


class InputLayer(Layer):
    """
    One neuron per pixel of a (width x height) image, depth 1.
    The activations are the pixel values themselves; there are no weights
    and no forward or backward computation.
    """

    def __init__(self, width, height):
        super().__init__((width, height, 1))

    def set_sample(self, pixels, slot):
        pixels = np.asarray(pixels)
        if pixels.size != self.size:
            raise ValueError(
                f"Pixel buffer has {pixels.size} values, input layer has {self.size} neurons"
            )
        # pixel i of the row-major image is neuron (i % width, i // width, 0)
        self.activations(slot)[...] = np.reshape(pixels, self.shape, order="F")

    # Nothing precedes the input layer, so nobody reads an error from it.
    def read_error(self, index, slot):
        raise UnsupportedOperationError(self, "read_error")

    def read_error_at(self, x, y, z, slot):
        raise UnsupportedOperationError(self, "read_error_at")

    def read_errors(self, slot, shape):
        raise UnsupportedOperationError(self, "read_errors")
