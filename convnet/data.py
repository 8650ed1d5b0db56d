"""
data.py
~~~~~~~

Dataset partitions for training and evaluation, plus a reader for the
big-endian IDX files the MNIST images and labels are distributed in.
"""

import gzip
import os
from typing import Optional

import numpy as np


IDX_LABELS_MAGIC = 2049
IDX_IMAGES_MAGIC = 2051


class Partition:
    """
    Parallel sequences of flattened images (N, pixels) and integer labels (N,).
    """

    def __init__(self, images, labels):
        images = np.asarray(images, dtype=np.float32)
        labels = np.asarray(labels, dtype=np.int64)
        if images.ndim == 1:
            images = images[:, None]
        images = images.reshape(images.shape[0], int(np.prod(images.shape[1:])))
        if images.shape[0] != labels.shape[0]:
            raise ValueError(
                f"{images.shape[0]} images but {labels.shape[0]} labels"
            )
        self.images = images
        self.labels = labels

    def __len__(self) -> int:
        return self.labels.shape[0]

    def shuffle(self, seed: int) -> None:
        """Permute images and labels in place with the same seeded permutation."""
        shuffle_in_unison(self.images, self.labels, seed)

    def take(self, n: int) -> "Partition":
        return Partition(self.images[:n], self.labels[:n])


def shuffle_in_unison(images, labels, seed):
    if len(images) != len(labels):
        raise ValueError(f"Cannot shuffle {len(images)} images with {len(labels)} labels")
    perm = np.random.default_rng(seed).permutation(len(labels))
    images[...] = images[perm]
    labels[...] = labels[perm]
    return perm


class Dataset:
    """Training, validation and test partitions."""

    def __init__(self, training: Partition,
                 validation: Optional[Partition] = None,
                 test: Optional[Partition] = None):
        self.training = training
        self.validation = validation if validation is not None else Partition(
            np.zeros((0, training.images.shape[1])), np.zeros(0))
        self.test = test if test is not None else Partition(
            np.zeros((0, training.images.shape[1])), np.zeros(0))

    def __repr__(self):
        return (f"Dataset(training={len(self.training)}, "
                f"validation={len(self.validation)}, test={len(self.test)})")


def _open(path):
    if path.endswith(".gz"):
        return gzip.open(path, "rb")
    return open(path, "rb")


def _resolve(directory, name):
    for candidate in (name, name + ".gz"):
        path = os.path.join(directory, candidate)
        if os.path.exists(path):
            return path
    raise FileNotFoundError(f"No {name}[.gz] in {directory}")


def read_idx_labels(path: str) -> np.ndarray:
    with _open(path) as f:
        data = f.read()
    magic, num_items = np.frombuffer(data, dtype=">u4", count=2)
    if magic != IDX_LABELS_MAGIC:
        raise ValueError(f"{path}: bad label file magic number {magic}")
    labels = np.frombuffer(data, dtype=np.uint8, offset=8)
    if labels.size != num_items:
        raise ValueError(f"{path}: expected {num_items} labels, found {labels.size}")
    return labels.astype(np.int64)


def read_idx_images(path: str) -> np.ndarray:
    """Images as (N, rows*cols) float32 scaled from [0, 255] to [0, 1]."""
    with _open(path) as f:
        data = f.read()
    magic, num_images, rows, cols = np.frombuffer(data, dtype=">u4", count=4)
    if magic != IDX_IMAGES_MAGIC:
        raise ValueError(f"{path}: bad image file magic number {magic}")
    pixels = np.frombuffer(data, dtype=np.uint8, offset=16)
    if pixels.size != num_images * rows * cols:
        raise ValueError(
            f"{path}: expected {num_images}x{rows}x{cols} pixels, found {pixels.size}"
        )
    return pixels.reshape(int(num_images), int(rows * cols)).astype(np.float32) / 255.0


def load_mnist(directory: str,
               num_training: Optional[int] = None,
               num_test: Optional[int] = None,
               validation_size: int = 0) -> Dataset:
    """
    Load the MNIST IDX files from `directory`.

    The training set is truncated to num_training images, then the last
    validation_size of those are moved to the validation partition.
    """
    train_images = read_idx_images(_resolve(directory, "train-images-idx3-ubyte"))
    train_labels = read_idx_labels(_resolve(directory, "train-labels-idx1-ubyte"))
    test_images = read_idx_images(_resolve(directory, "t10k-images-idx3-ubyte"))
    test_labels = read_idx_labels(_resolve(directory, "t10k-labels-idx1-ubyte"))

    training = Partition(train_images, train_labels)
    test = Partition(test_images, test_labels)
    if num_training is not None:
        training = training.take(num_training)
    if num_test is not None:
        test = test.take(num_test)
    if not 0 <= validation_size <= len(training):
        raise ValueError(
            f"validation_size {validation_size} exceeds {len(training)} training images"
        )
    split = len(training) - validation_size
    validation = Partition(training.images[split:], training.labels[split:])
    training = Partition(training.images[:split], training.labels[:split])
    return Dataset(training, validation, test)
