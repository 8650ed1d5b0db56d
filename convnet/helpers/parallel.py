from concurrent.futures import ThreadPoolExecutor, wait


class WorkerPool:
    """
    Fixed-size pool for data-parallel work over mini-batch slots.

    map() and reduce() only return once every task has finished, which is
    the barrier between the per-sample passes and the weight update.
    With one worker the tasks run inline on the calling thread.
    """

    def __init__(self, num_workers=1):
        self.num_workers = int(num_workers)
        self._executor = None
        if self.num_workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.num_workers, thread_name_prefix="convnet"
            )

    def map(self, fn, items):
        if self._executor is None:
            return [fn(item) for item in items]
        futures = [self._executor.submit(fn, item) for item in items]
        # every task finishes, failed or not, before any failure is re-raised
        wait(futures)
        return [f.result() for f in futures]

    def reduce(self, fn, items, initial=0):
        # Results are combined in submission order, so the total does not
        # depend on which worker finished first.
        total = initial
        for value in self.map(fn, items):
            total += value
        return total

    def shutdown(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
