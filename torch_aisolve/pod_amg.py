"""
Two-level preconditioner with a POD coarse space (POD-AMG).

One cycle is an algebraic multigrid V-cycle in which the graph-based coarse
grid is replaced by the span of the POD basis Phi:

1. pre-smooth with Gauss-Seidel sweeps starting from zero
2. coarse Galerkin correction ``x += Phi (Phi^T A Phi)^{-1} Phi^T (r - A x)``
3. post-smooth with Gauss-Seidel sweeps

With the default symmetric smoother the pre-sweep runs forward and the
post-sweep backward, so the cycle is a symmetric operator and can
precondition conjugate gradients.

The factory owns the basis and the smoother configuration. It is initialized
exactly once per run and then only read: ``create(A)`` binds it to the matrix
of one solve, factorizing the small coarse matrix and the triangles of A.
"""

import logging
from typing import Callable, Optional

import numpy as np
import torch
from torch import Tensor

from .backends import CachedSparseMatrix, split_triangles, triangular_solver
from .backends.scipy_backend import from_numpy, to_numpy
from .check import ConfigurationError, DimensionMismatch
from .config import SmootherConfig
from .pod import PodBasis

logger = logging.getLogger(__name__)


class GaussSeidelSmoother:
    """
    Gauss-Seidel sweeps on ``A x = r`` for a split ``A = L + D + U``.

    forward:  ``x <- (D + L)^{-1} (r - U x)``
    backward: ``x <- (D + U)^{-1} (r - L x)``
    """
    def __init__(self, A: CachedSparseMatrix, config: Optional[SmootherConfig] = None):
        self.config = config or SmootherConfig()
        lower, strict_upper, upper, strict_lower = split_triangles(A.to_scipy())
        self._strict_upper = strict_upper
        self._strict_lower = strict_lower
        direction = self.config.direction
        self._lower_solve = triangular_solver(lower) if direction in ("forward", "symmetric") else None
        self._upper_solve = triangular_solver(upper) if direction in ("backward", "symmetric") else None

    def forward_sweep(self, r: np.ndarray, x: np.ndarray) -> np.ndarray:
        return self._lower_solve(r - self._strict_upper @ x)

    def backward_sweep(self, r: np.ndarray, x: np.ndarray) -> np.ndarray:
        return self._upper_solve(r - self._strict_lower @ x)

    def _sweeps(self, sweep: Callable, r: Tensor, x: Tensor) -> Tensor:
        r_np = to_numpy(r)
        x_np = to_numpy(x)
        for _ in range(self.config.sweeps):
            x_np = sweep(r_np, x_np)
        return from_numpy(x_np, like=x)

    def presmooth(self, r: Tensor, x: Tensor) -> Tensor:
        if self.config.direction == "backward":
            return self._sweeps(self.backward_sweep, r, x)
        return self._sweeps(self.forward_sweep, r, x)

    def postsmooth(self, r: Tensor, x: Tensor) -> Tensor:
        if self.config.direction == "forward":
            return self._sweeps(self.forward_sweep, r, x)
        return self._sweeps(self.backward_sweep, r, x)


class PodAmgPreconditioner:
    """
    POD-AMG preconditioner bound to one system matrix.

    Calling it with a residual returns the correction ``z ~ A^{-1} r``.
    """
    def __init__(self,
                 A: CachedSparseMatrix,
                 basis: PodBasis,
                 smoother: Optional[SmootherConfig] = None,
                 num_cycles: int = 1):
        if basis.num_dofs != A.n:
            raise DimensionMismatch("basis", tuple(basis.vectors.shape), f"[{A.n}, k]")
        self.A = A
        self.basis = basis
        self.num_cycles = num_cycles
        self.smoother = GaussSeidelSmoother(A, smoother)

        Phi = basis.vectors.to(dtype=A.dtype, device=A.device)
        coarse = Phi.T @ A.matmat(Phi)
        coarse = 0.5 * (coarse + coarse.T)
        L, info = torch.linalg.cholesky_ex(coarse)
        if info.item() != 0:
            raise ConfigurationError(
                "coarse matrix Phi^T A Phi is not positive definite, the system matrix must be SPD")
        self._Phi = Phi
        self._coarse_factor = L

    def coarse_correction(self, res: Tensor) -> Tensor:
        """``Phi (Phi^T A Phi)^{-1} Phi^T res``"""
        rc = (self._Phi.T @ res).unsqueeze(1)
        ec = torch.cholesky_solve(rc, self._coarse_factor).squeeze(1)
        return self._Phi @ ec

    def __call__(self, r: Tensor) -> Tensor:
        x = torch.zeros_like(r)
        for _ in range(self.num_cycles):
            x = self.smoother.presmooth(r, x)
            x = x + self.coarse_correction(r - self.A.matvec(x))
            x = self.smoother.postsmooth(r, x)
        return x


def apply(preconditioner: PodAmgPreconditioner, r: Tensor) -> Tensor:
    """Apply a bound preconditioner to a residual."""
    return preconditioner(r)


class PodAmgPreconditionerFactory:
    """
    Immutable-after-initialization state of the POD-AMG preconditioner.

    Example
    -------
    >>> factory = PodAmgPreconditionerFactory(SmootherConfig("symmetric", 1))
    >>> factory.initialize(pod_basis(snapshots, rank=8))
    >>> result = solve(A, b, preconditioner=factory.create(A))
    """
    def __init__(self, smoother: Optional[SmootherConfig] = None, num_cycles: int = 1):
        if num_cycles < 1:
            raise ConfigurationError(f"num_cycles must be at least 1, got {num_cycles}")
        self.smoother = smoother or SmootherConfig()
        self.num_cycles = num_cycles
        if self.smoother.direction != "symmetric":
            logger.warning("POD-AMG with a %s-only Gauss-Seidel smoother is not symmetric, "
                           "PCG convergence is not guaranteed", self.smoother.direction)
        self._basis = None

    @property
    def is_initialized(self) -> bool:
        return self._basis is not None

    @property
    def basis(self) -> Optional[PodBasis]:
        return self._basis

    def initialize(self, basis: PodBasis) -> None:
        """Attach the POD basis; allowed exactly once."""
        if self._basis is not None:
            raise ConfigurationError("POD-AMG preconditioner has already been built, create a new factory instead")
        if basis.rank < 1:
            raise ConfigurationError("POD basis has no components")
        self._basis = basis
        logger.info("POD-AMG preconditioner initialized (rank=%d, smoother=%s x%d, cycles=%d)",
                    basis.rank, self.smoother.direction, self.smoother.sweeps, self.num_cycles)

    def create(self, A: CachedSparseMatrix) -> PodAmgPreconditioner:
        """Bind the preconditioner to the matrix of one solve."""
        if self._basis is None:
            raise ConfigurationError("POD-AMG preconditioner used before a POD basis was attached")
        return PodAmgPreconditioner(A, self._basis, self.smoother, self.num_cycles)
