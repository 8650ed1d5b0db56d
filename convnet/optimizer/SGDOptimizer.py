class SGDOptimizer:
    def __init__(self, lr=0.1, lam=0.0):
        self.lr = lr
        self.lam = lam

    def step(self, param, grad_sum, batch_size, num_training_images, decay=True):
        """
        In-place update of `param` from the gradient summed over a mini-batch.

        With decay, the parameter is first shrunk by 1 - lr*(lam/n) (L2
        regularisation); then the averaged gradient scaled by lr is subtracted.
        """
        if decay and self.lam != 0.0:
            param *= 1.0 - self.lr * (self.lam / num_training_images)
        param -= (self.lr / batch_size) * grad_sum
