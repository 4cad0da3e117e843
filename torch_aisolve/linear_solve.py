import warnings
from typing import Callable, Optional, Tuple, Union

import torch

from .backends import CachedSparseMatrix, SolveResult, get_preconditioner, pcg_solve
from .check import check_coo, check_vector

Preconditioner = Union[str, Callable[[torch.Tensor], torch.Tensor], None]


def solve(A:CachedSparseMatrix,
          b:torch.Tensor,
          preconditioner:Preconditioner = None,
          rtol:float = 1e-6,
          max_iter_fraction:float = 0.5,
          x0:Optional[torch.Tensor] = None)->SolveResult:
    """Solve :math:`Ax = b` with PCG on an already cached matrix

    Parameters
    ----------
    A : CachedSparseMatrix
        SPD system matrix
    b : torch.Tensor
        [n]
    preconditioner : str or callable, optional
        a baseline name ('jacobi', 'none'), a callable ``r -> z``, or None
        for the Jacobi baseline
    rtol : float, optional
        relative residual tolerance, by default 1e-6
    max_iter_fraction : float, optional
        iteration cap as a fraction of the matrix order, by default 0.5
    x0 : torch.Tensor, optional
        [n] initial guess

    Returns
    -------
    SolveResult
        (x, num_iters, residual, converged)
    """
    assert rtol > 0, f"rtol must be positive, got {rtol}"
    assert max_iter_fraction > 0, f"max_iter_fraction must be positive, got {max_iter_fraction}"
    check_vector("b", b, A.n)
    if x0 is not None:
        check_vector("x0", x0, A.n)
    if isinstance(preconditioner, str):
        preconditioner = get_preconditioner(A, preconditioner)
    return pcg_solve(A, b, preconditioner=preconditioner, rtol=rtol,
                     max_iter_fraction=max_iter_fraction, x0=x0)


def spsolve(val:torch.Tensor,
            row:torch.Tensor,
            col:torch.Tensor,
            shape:Tuple[int,int],
            b:torch.Tensor,
            preconditioner:Preconditioner = None,
            rtol:float = 1e-6,
            max_iter_fraction:float = 0.5,
            x0:Optional[torch.Tensor] = None)->SolveResult:
    """Solve the Sparse Linear Equation represented in COO format

    .. math::
        Ax = b

    Parameters
    ----------
    val : torch.Tensor
        [nnz]
    row : torch.Tensor
        [nnz]
    col : torch.Tensor
        [nnz]
    shape : Tuple[int, int]
        (n, n)
    b : torch.Tensor
        [n]
    preconditioner : str or callable, optional
        by default the Jacobi baseline
    rtol : float, optional
        , by default 1e-6
    max_iter_fraction : float, optional
        , by default 0.5

    Returns
    -------
    SolveResult
        (x, num_iters, residual, converged)
    """
    check_coo(val, row, col, shape)
    assert val.dtype == b.dtype, f"val and b must have same dtype, got {val.dtype} and {b.dtype}"
    if val.dtype != torch.float64:
        warnings.warn("You'd better use float64 to maintain good precision")
    A = CachedSparseMatrix(val, row, col, shape)
    return solve(A, b, preconditioner=preconditioner, rtol=rtol,
                 max_iter_fraction=max_iter_fraction, x0=x0)


def solve_system(system,
                 preconditioner:Preconditioner = None,
                 rtol:float = 1e-6,
                 max_iter_fraction:float = 0.5,
                 x0:Optional[torch.Tensor] = None)->SolveResult:
    """Solve a :class:`~torch_aisolve.provider.LinearSystem`"""
    return spsolve(system.val, system.row, system.col, system.shape, system.b,
                   preconditioner=preconditioner, rtol=rtol,
                   max_iter_fraction=max_iter_fraction, x0=x0)
