from .logger import RunLogger
from .parallel import WorkerPool

__all__ = ["RunLogger", "WorkerPool"]
