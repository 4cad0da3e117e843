"""
Linear systems of a parameterized family.

Assembly is not part of this package: any callable mapping a parameter vector
to a :class:`LinearSystem` can drive a run. The same discretization is shared
by the whole family, so every system of a run has the same number of dofs.
"""

import logging
import threading
from typing import Any, Dict, NamedTuple, Optional, Protocol, Tuple

import torch

from .backends import CachedSparseMatrix
from .check import ConfigurationError, DimensionMismatch, check_coo, check_vector

logger = logging.getLogger(__name__)


class LinearSystem(NamedTuple):
    """Sparse SPD matrix in COO format with its right-hand side."""
    val: torch.Tensor
    row: torch.Tensor
    col: torch.Tensor
    shape: Tuple[int, int]
    b: torch.Tensor
    metadata: Optional[Dict[str, Any]] = None

    @property
    def num_dofs(self) -> int:
        return self.shape[0]

    def matrix(self) -> CachedSparseMatrix:
        return CachedSparseMatrix(self.val, self.row, self.col, self.shape)


class LinearSystemProvider(Protocol):
    num_parameters: Optional[int]

    def __call__(self, parameters: torch.Tensor) -> LinearSystem:
        ...


class CheckedProvider:
    """
    Wrap a provider and enforce the contract of one run.

    - the provider exists
    - parameter vectors have the length the provider expects (when it says)
    - every system is well formed and has the dof count of the first one
    """
    def __init__(self, provider: Optional[LinearSystemProvider]):
        if provider is None:
            raise ConfigurationError("no linear system provider given")
        self.provider = provider
        self.num_dofs: Optional[int] = None
        self._lock = threading.Lock()

    def __call__(self, parameters: torch.Tensor) -> LinearSystem:
        expected = getattr(self.provider, "num_parameters", None)
        if expected is not None and parameters.shape[-1] != expected:
            raise ConfigurationError(
                f"provider expects {expected} parameters, got {parameters.shape[-1]}")

        system = self.provider(parameters)
        check_coo(system.val, system.row, system.col, system.shape)
        check_vector("b", system.b, system.shape[0])

        with self._lock:
            if self.num_dofs is None:
                self.num_dofs = system.num_dofs
                logger.debug("Provider fixed the run to %d dofs", self.num_dofs)
        if system.num_dofs != self.num_dofs:
            raise DimensionMismatch("system", tuple(system.shape), f"({self.num_dofs}, {self.num_dofs})")
        return system
