"""
PyTorch-native iterative solve kernel.

The matrix is kept as a cached CSR tensor so repeated mat-vecs inside one
solve do not rebuild it. The solver is a textbook preconditioned conjugate
gradient for SPD systems.

Baseline preconditioners:
- 'jacobi': Diagonal (Jacobi) preconditioner (default)
- 'none': No preconditioning

Any callable ``r -> z`` can be passed in place of a named preconditioner,
which is how the POD two-level preconditioner plugs in.
"""

import logging
import math
import warnings
from typing import Callable, NamedTuple, Optional, Tuple

import torch
from torch import Tensor

from ..check import NumericalNonConvergence
from .scipy_backend import torch_coo_to_scipy_csr

logger = logging.getLogger(__name__)


class SolveResult(NamedTuple):
    """Result of iterative solve."""
    x: Tensor
    num_iters: int
    residual: float
    converged: bool


class CachedSparseMatrix:
    """
    Cached sparse matrix for efficient repeated matvec operations.
    Avoids repeated COO -> CSR conversion.
    """
    def __init__(self, val: Tensor, row: Tensor, col: Tensor, shape: Tuple[int, int]):
        self.val = val
        self.row = row
        self.col = col
        self.shape = tuple(shape)
        self.device = val.device
        self.dtype = val.dtype
        self.n = self.shape[0]

        # Build CSR matrix once (duplicates are summed by coalesce)
        indices = torch.stack([row, col], dim=0)
        coo = torch.sparse_coo_tensor(indices, val, self.shape, device=val.device, dtype=val.dtype)
        self._csr = coo.coalesce().to_sparse_csr()

        self._diag = None
        self._scipy = None

    def matvec(self, x: Tensor) -> Tensor:
        """Sparse matrix-vector product y = A @ x"""
        return torch.mv(self._csr, x)

    def matmat(self, X: Tensor) -> Tensor:
        """Sparse matrix-dense matrix product Y = A @ X"""
        return torch.sparse.mm(self._csr, X)

    @property
    def diagonal(self) -> Tensor:
        """Get diagonal elements (cached)"""
        if self._diag is None:
            self._diag = torch.zeros(self.n, dtype=self.dtype, device=self.device)
            diag_mask = self.row == self.col
            self._diag.scatter_add_(0, self.row[diag_mask], self.val[diag_mask])
        return self._diag

    def to_scipy(self):
        """SciPy CSR copy of the matrix (cached), used by the CPU smoothers"""
        if self._scipy is None:
            self._scipy = torch_coo_to_scipy_csr(self.val, self.row, self.col, self.shape)
        return self._scipy


# ============================================================================
# Baseline preconditioners
# ============================================================================

def jacobi_preconditioner(A: CachedSparseMatrix) -> Callable[[Tensor], Tensor]:
    """
    Jacobi (diagonal) preconditioner: M^{-1} = diag(A)^{-1}.

    Zero diagonal entries are replaced by one so that the operator stays
    defined on singular rows.
    """
    diag = A.diagonal
    eps = torch.finfo(diag.dtype).eps * 100
    D_inv = 1.0 / torch.where(torch.abs(diag) < eps, torch.ones_like(diag), diag)

    def apply(r: Tensor) -> Tensor:
        return D_inv * r

    return apply


def identity_preconditioner(A: CachedSparseMatrix) -> Callable[[Tensor], Tensor]:
    """No preconditioning: M^{-1} = I."""
    return lambda r: r


BASELINE_PRECONDITIONERS = {
    'jacobi': jacobi_preconditioner,
    'none': identity_preconditioner,
}


def get_preconditioner(A: CachedSparseMatrix, name: str = 'jacobi') -> Callable[[Tensor], Tensor]:
    """
    Get a baseline preconditioner by name.

    Parameters
    ----------
    A : CachedSparseMatrix
        Sparse matrix
    name : str
        'jacobi' or 'none'
    """
    if name not in BASELINE_PRECONDITIONERS:
        raise ValueError(f"Unknown preconditioner: {name}. "
                         f"Available: {', '.join(BASELINE_PRECONDITIONERS)}")
    return BASELINE_PRECONDITIONERS[name](A)


def max_iterations(n: int, fraction: float) -> int:
    """Iteration cap expressed as a fraction of the matrix order."""
    return max(1, int(math.ceil(fraction * n)))


# ============================================================================
# PCG Solver
# ============================================================================

def pcg_solve(
    A: CachedSparseMatrix,
    b: Tensor,
    preconditioner: Optional[Callable[[Tensor], Tensor]] = None,
    rtol: float = 1e-6,
    max_iter_fraction: float = 0.5,
    x0: Optional[Tensor] = None,
) -> SolveResult:
    """
    Preconditioned Conjugate Gradient solver.

    Iterates until ``||b - A x|| <= rtol * ||b||`` or until
    ``ceil(max_iter_fraction * n)`` iterations have been spent. Hitting the
    cap is not an error: a ``NumericalNonConvergence`` warning is emitted and
    the last iterate is returned with ``converged=False``.

    Parameters
    ----------
    A : CachedSparseMatrix
        SPD sparse matrix
    b : Tensor
        [n] right-hand side
    preconditioner : callable, optional
        ``r -> z`` approximating ``A^{-1} r``; Jacobi when omitted
    rtol : float
        Relative residual tolerance
    max_iter_fraction : float
        Iteration cap as a fraction of the matrix order
    x0 : Tensor, optional
        [n] initial guess, zero when omitted

    Returns
    -------
    SolveResult
        (x, num_iters, residual, converged), residual is the relative one
    """
    n = A.n
    maxiter = max_iterations(n, max_iter_fraction)

    if preconditioner is None:
        preconditioner = jacobi_preconditioner(A)

    b_norm = torch.norm(b).item()
    if b_norm == 0.0:
        return SolveResult(torch.zeros_like(b), 0, 0.0, True)
    tol = rtol * b_norm

    if x0 is None:
        x = torch.zeros_like(b)
        r = b.clone()
    else:
        x = x0.clone()
        r = b - A.matvec(x)

    residual = torch.norm(r).item()
    if residual <= tol:
        return SolveResult(x, 0, residual / b_norm, True)

    z = preconditioner(r)
    p = z.clone()
    rz_old = torch.dot(r, z)

    for i in range(maxiter):
        Ap = A.matvec(p)
        pAp = torch.dot(p, Ap)
        if pAp.item() <= 0:
            warnings.warn(f"PCG: Matrix not positive definite (p'Ap = {pAp.item():.2e})",
                          NumericalNonConvergence)
            return SolveResult(x, i, residual / b_norm, False)

        alpha = rz_old / pAp
        x = x + alpha * p
        r = r - alpha * Ap

        residual = torch.norm(r).item()
        if residual <= tol:
            logger.debug("PCG converged in %d iterations (n=%d, residual=%.2e)",
                         i + 1, n, residual / b_norm)
            return SolveResult(x, i + 1, residual / b_norm, True)

        z = preconditioner(r)
        rz_new = torch.dot(r, z)
        beta = rz_new / rz_old
        p = z + beta * p
        rz_old = rz_new

    warnings.warn(f"PCG did not converge in {maxiter} iterations (residual={residual / b_norm:.2e})",
                  NumericalNonConvergence)
    return SolveResult(x, maxiter, residual / b_norm, False)
