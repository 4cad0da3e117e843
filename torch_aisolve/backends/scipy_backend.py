"""
SciPy backend for the CPU parts of the smoother.

Gauss-Seidel sweeps are triangular solves, which PyTorch does not offer for
sparse CSR tensors on the CPU. The triangles of A are therefore handed to
SuperLU once per matrix; with natural ordering and diagonal pivoting the
factorization of a triangular matrix has no fill-in, so every later solve is
a single compiled O(nnz) pass.
"""

from typing import Callable, Tuple

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
import torch


def torch_coo_to_scipy_csr(
    val: torch.Tensor,
    row: torch.Tensor,
    col: torch.Tensor,
    shape: Tuple[int, int]
) -> "sp.csr_matrix":
    """Convert PyTorch COO tensors to SciPy CSR matrix (duplicates summed)"""
    val_np = val.detach().cpu().numpy()
    row_np = row.detach().cpu().numpy()
    col_np = col.detach().cpu().numpy()

    coo = sp.coo_matrix((val_np, (row_np, col_np)), shape=shape)
    return coo.tocsr()


def split_triangles(A: "sp.csr_matrix"):
    """
    Split A = L + D + U

    Returns
    -------
    Tuple
        (D + L, U, D + U, L) as CSR matrices
    """
    lower = sp.tril(A, k=0, format="csr")
    strict_upper = sp.triu(A, k=1, format="csr")
    upper = sp.triu(A, k=0, format="csr")
    strict_lower = sp.tril(A, k=-1, format="csr")
    return lower, strict_upper, upper, strict_lower


def triangular_solver(T: "sp.spmatrix") -> Callable[[np.ndarray], np.ndarray]:
    """
    Factorize a triangular matrix once and return ``rhs -> T^{-1} rhs``

    Raises
    ------
    RuntimeError
        if T has a zero on its diagonal
    """
    if np.any(T.diagonal() == 0):
        raise RuntimeError("Gauss-Seidel requires a nonzero diagonal")
    lu = spla.splu(sp.csc_matrix(T), permc_spec="NATURAL", diag_pivot_thresh=0.0,
                   options=dict(SymmetricMode=True))
    return lu.solve


def to_numpy(x: torch.Tensor) -> np.ndarray:
    return x.detach().cpu().numpy()


def from_numpy(x: np.ndarray, like: torch.Tensor) -> torch.Tensor:
    return torch.from_numpy(np.ascontiguousarray(x)).to(device=like.device, dtype=like.dtype)
