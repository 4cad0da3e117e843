"""
Backends of the solve kernel.

- pytorch: cached CSR mat-vec, baseline preconditioners and PCG
- scipy: CPU triangular solves used by the Gauss-Seidel smoother
"""

from .pytorch_backend import (
    SolveResult,
    CachedSparseMatrix,
    jacobi_preconditioner,
    identity_preconditioner,
    get_preconditioner,
    max_iterations,
    pcg_solve,
    BASELINE_PRECONDITIONERS,
)

from .scipy_backend import (
    torch_coo_to_scipy_csr,
    split_triangles,
    triangular_solver,
)

__all__ = [
    "SolveResult",
    "CachedSparseMatrix",
    "jacobi_preconditioner",
    "identity_preconditioner",
    "get_preconditioner",
    "max_iterations",
    "pcg_solve",
    "BASELINE_PRECONDITIONERS",
    "torch_coo_to_scipy_csr",
    "split_triangles",
    "triangular_solver",
]
