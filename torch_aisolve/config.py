"""
Run configuration.

Every option has the default used by the POD2G reference runs, so
``AISolveConfig()`` is a complete configuration.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from .check import ConfigurationError

SWEEP_DIRECTIONS = ("forward", "backward", "symmetric")
NONCONVERGENCE_POLICIES = ("warn", "raise")


@dataclass(frozen=True)
class SmootherConfig:
    """
    Gauss-Seidel smoother of the fine level.

    ``"symmetric"`` sweeps forward before the coarse correction and backward
    after it, which keeps the cycle symmetric as conjugate gradients requires.
    ``"forward"`` and ``"backward"`` sweep in one direction both times; the
    resulting preconditioner is not symmetric and PCG may stall with it.
    """
    direction: str = "symmetric"
    sweeps: int = 1

    def __post_init__(self):
        if self.direction not in SWEEP_DIRECTIONS:
            raise ConfigurationError(
                f"smoother direction must be one of {SWEEP_DIRECTIONS}, got {self.direction!r}")
        if self.sweeps < 1:
            raise ConfigurationError(f"smoother sweeps must be at least 1, got {self.sweeps}")


@dataclass
class AISolveConfig:
    rtol: float = 1e-6
    max_iter_fraction: float = 0.5
    pod_rank: int = 8
    keep_only_nonzero: bool = True
    smoother: SmootherConfig = field(default_factory=SmootherConfig)
    num_cycles: int = 1
    baseline_preconditioner: str = "jacobi"
    on_nonconvergence: str = "warn"
    warm_start: bool = False
    max_workers: Optional[int] = None
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.smoother, Mapping):
            self.smoother = SmootherConfig(**self.smoother)
        self.validate()

    def validate(self) -> "AISolveConfig":
        """Raise ConfigurationError on the first out-of-range option"""
        if not self.rtol > 0:
            raise ConfigurationError(f"rtol must be positive, got {self.rtol}")
        if not self.max_iter_fraction > 0:
            raise ConfigurationError(f"max_iter_fraction must be positive, got {self.max_iter_fraction}")
        if self.pod_rank < 1:
            raise ConfigurationError(f"pod_rank must be at least 1, got {self.pod_rank}")
        if self.num_cycles < 1:
            raise ConfigurationError(f"num_cycles must be at least 1, got {self.num_cycles}")
        if self.baseline_preconditioner not in ("jacobi", "none"):
            raise ConfigurationError(
                f"baseline_preconditioner must be 'jacobi' or 'none', got {self.baseline_preconditioner!r}")
        if self.on_nonconvergence not in NONCONVERGENCE_POLICIES:
            raise ConfigurationError(
                f"on_nonconvergence must be one of {NONCONVERGENCE_POLICIES}, got {self.on_nonconvergence!r}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        return self

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "AISolveConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration options: {', '.join(unknown)}")
        return cls(**options)
