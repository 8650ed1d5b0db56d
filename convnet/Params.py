from dataclasses import asdict, dataclass
import json

import numpy as np


COSTS = ("cross_entropy", "quadratic")


@dataclass(frozen=True)
class Params:
    """
    Hyperparameters and monitoring switches for a training run.
    Read by the network at construction; never modified afterwards.
    """
    learning_rate: float = 0.1
    lam: float = 5.0                # L2 weight-decay coefficient
    mb_size: int = 10
    num_epochs: int = 1
    seed: int = 0
    num_workers: int = 1
    cost: str = "cross_entropy"
    dtype: type = np.float32
    monitor_interval: int = 1000    # in samples
    monitor_evaluation_accuracy: bool = False
    monitor_evaluation_cost: bool = False
    monitor_training_accuracy: bool = False
    monitor_training_cost: bool = False
    verbose: int = 1

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.lam < 0:
            raise ValueError(f"lam must be non-negative, got {self.lam}")
        if self.mb_size < 1:
            raise ValueError(f"mb_size must be >= 1, got {self.mb_size}")
        if self.num_epochs < 0:
            raise ValueError(f"num_epochs must be >= 0, got {self.num_epochs}")
        if self.num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.monitor_interval < 1:
            raise ValueError(f"monitor_interval must be >= 1, got {self.monitor_interval}")
        if self.cost not in COSTS:
            raise ValueError(f"Unknown cost {self.cost!r}, expected one of {COSTS}")

    def __str__(self):
        values = asdict(self)
        values["dtype"] = np.dtype(self.dtype).name
        return json.dumps(values, indent=4)
