import time
import numpy as np

from .Params import Params
from .errors import CompositionError
from .layers import InputLayer, SoftmaxLayer
from .loss import get_loss
from .optimizer import SGDOptimizer
from .helpers.parallel import WorkerPool


class Network:
    """
    A chain InputLayer -> layers... -> SoftmaxLayer trained by mini-batch SGD.

    Every sample of a mini-batch is processed in its own slot of each
    layer's neuron storage, so the per-sample passes can run on a worker
    pool. Weights are only read during those passes and only written by
    end_batch, after all of them have finished.
    """

    def __init__(self, params, layers, input_shape=(28, 28), num_classes=10, loss=None):
        if not isinstance(params, Params):
            raise TypeError(f"params must be a Params instance, got {type(params).__name__}")
        self.params = params
        self.input_layer = InputLayer(*input_shape)
        self.loss = loss if loss is not None else get_loss(params.cost)
        self.output_layer = SoftmaxLayer(num_classes, loss=self.loss)
        self.layers = list(layers) + [self.output_layer]
        self.optimizer = SGDOptimizer(params.learning_rate, params.lam)
        self.generator = np.random.default_rng(params.seed)
        self.pool = WorkerPool(params.num_workers)

        if len(set(map(id, self.layers))) != len(self.layers):
            raise CompositionError("The same layer object appears twice in the chain")
        # Wire the chain, checking each layer against its predecessor.
        previous = self.input_layer
        for layer in self.layers:
            layer.set_predecessor(previous)
            layer.allocate(params.mb_size, params.dtype)
            previous = layer
        self.input_layer.allocate(params.mb_size, params.dtype)
        for layer, nxt in zip(self.layers, self.layers[1:]):
            layer.set_successor(nxt)
        for layer in self.layers:
            layer.initialize_weights(self.generator)

    # ================== passes ==================
    def feed_forward(self, slot):
        for layer in self.layers:
            layer.feed_forward(slot)

    def backpropagate(self, pixels, label, slot):
        self.input_layer.set_sample(pixels, slot)
        self.feed_forward(slot)
        # Output error, then the component for the layer before it.
        self.output_layer.compute_output_error(label, slot)
        self.output_layer.propagate_error_to_previous(slot)
        for layer in reversed(self.layers[1:-1]):
            layer.compute_backward_error(slot)
            layer.propagate_error_to_previous(slot)
        if len(self.layers) > 1:
            self.layers[0].compute_backward_error(slot)

    def update_mini_batch(self, images, labels, num_training_images):
        """
        Backpropagate each (image, label) in its own slot, then apply the
        averaged gradient to every layer.
        """
        n = len(labels)
        if not 1 <= n <= self.params.mb_size:
            raise ValueError(f"Mini-batch of {n} samples, slots available: {self.params.mb_size}")
        self.pool.map(lambda mb: self.backpropagate(images[mb], labels[mb], mb), range(n))
        # every worker has finished: safe to mutate weights
        for layer in reversed(self.layers):
            layer.end_batch(num_training_images, self.optimizer, batch_size=n)

    # ================== evaluation ==================
    def predict(self, pixels, slot=0):
        self.input_layer.set_sample(pixels, slot)
        self.feed_forward(slot)
        return self.output_layer.read_output(slot)

    def test_sample(self, pixels, label, slot):
        return int(self.predict(pixels, slot) == label)

    def sample_cost(self, pixels, label, slot):
        self.input_layer.set_sample(pixels, slot)
        self.feed_forward(slot)
        return self.output_layer.compute_output_cost(label, slot)

    def sum_squared_weights(self):
        return sum(layer.sum_squared_weights() for layer in self.layers)

    def _reduce_chunks(self, fn, images, labels):
        # Evaluate mb_size samples at a time, one slot each.
        total = 0
        for start in range(0, len(labels), self.params.mb_size):
            end = min(start + self.params.mb_size, len(labels))
            total += self.pool.reduce(
                lambda mb: fn(images[start + mb], labels[start + mb], mb),
                range(end - start),
            )
        return total

    def evaluate_accuracy(self, images, labels):
        """Number of correctly classified samples."""
        return int(self._reduce_chunks(self.test_sample, images, labels))

    def evaluate_total_cost(self, images, labels):
        """Mean per-sample cost plus the L2 regularisation term."""
        n = len(labels)
        if n == 0:
            return 0.0
        cost = self._reduce_chunks(self.sample_cost, images, labels) / n
        cost += 0.5 * (self.params.lam / n) * self.sum_squared_weights()
        return float(cost)

    # ================== training ==================
    def sgd(self, data, run_logger=None):
        """
        Train for params.num_epochs epochs over data.training.
        data: a Dataset (training / validation / test partitions).
        Returns the monitoring history.
        """
        p = self.params
        history = {
            "epoch_time": [],
            "evaluation_accuracy": [], "evaluation_cost": [],
            "training_accuracy": [], "training_cost": [],
        }
        if run_logger is not None:
            run_logger.log_params(p)

        training = data.training
        num_training_images = len(training)
        if num_training_images == 0:
            raise ValueError("No training data")

        for epoch in range(p.num_epochs):
            epoch_start = time.time()
            # Identically shuffle the training images and labels.
            seed = int(self.generator.integers(0, 2**32))
            training.shuffle(seed)

            for start in range(0, num_training_images, p.mb_size):
                end = min(start + p.mb_size, num_training_images)
                mb_start = time.time()
                self.update_mini_batch(
                    training.images[start:end], training.labels[start:end], num_training_images
                )
                if p.verbose > 1:
                    elapsed = max(time.time() - mb_start, 1e-9)
                    print(f"\rMinibatch {start} / {num_training_images} "
                          f"({(end - start) / elapsed:.1f} imgs/s)", end="")
                if start % p.monitor_interval == 0:
                    self._monitor(data, history)

            elapsed = time.time() - epoch_start
            history["epoch_time"].append(elapsed)
            if p.verbose > 0:
                if p.verbose > 1:
                    print()
                print(f"Epoch {epoch} complete in {elapsed:.2f} s.")
            if run_logger is not None:
                run_logger.log_epoch(epoch, time_s=elapsed, **self._latest(history))

        if run_logger is not None:
            run_logger.save_json()
        return history

    def _monitor(self, data, history):
        p = self.params
        checks = (
            (p.monitor_evaluation_accuracy, "evaluation_accuracy", data.validation, "evaluation data"),
            (p.monitor_evaluation_cost, "evaluation_cost", data.validation, "evaluation data"),
            (p.monitor_training_accuracy, "training_accuracy", data.training, "training data"),
            (p.monitor_training_cost, "training_cost", data.training, "training data"),
        )
        for enabled, key, partition, name in checks:
            if not enabled:
                continue
            if key.endswith("accuracy"):
                result = self.evaluate_accuracy(partition.images, partition.labels)
                message = f"Accuracy on {name}: {result} / {len(partition)}"
            else:
                result = self.evaluate_total_cost(partition.images, partition.labels)
                message = f"Cost on {name}: {result:.6f}"
            history[key].append(result)
            if p.verbose > 0:
                print(("\n" if p.verbose > 1 else "") + message)

    @staticmethod
    def _latest(history):
        latest = {}
        for key in ("evaluation_accuracy", "evaluation_cost", "training_accuracy", "training_cost"):
            if history[key]:
                latest[key] = history[key][-1]
        return latest

    # ================== lifetime ==================
    def close(self):
        self.pool.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        chain = " -> ".join(repr(layer) for layer in [self.input_layer] + self.layers)
        return f"Network({chain})"
