"""
Proper orthogonal decomposition of solution snapshots.

The snapshot matrix is decomposed raw: it is never mean-centered, so the
basis spans the dominant directions of the solutions themselves and a
solution that is a multiple of an earlier one is reproduced exactly by the
coarse space.
"""

import logging
from typing import NamedTuple

import torch

from .check import ConfigurationError, DimensionMismatch, check_snapshots

logger = logging.getLogger(__name__)


class PodBasis(NamedTuple):
    """Orthonormal POD basis, immutable once built."""
    vectors: torch.Tensor  # (n, k) orthonormal columns
    singular_values: torch.Tensor  # (k,) descending
    requested_rank: int

    @property
    def rank(self) -> int:
        return self.vectors.shape[1]

    @property
    def num_dofs(self) -> int:
        return self.vectors.shape[0]


def zero_threshold(singular_values:torch.Tensor, shape) -> float:
    """Singular values at or below this are numerically zero (matrix-rank convention)"""
    if singular_values.numel() == 0:
        return 0.0
    eps = torch.finfo(singular_values.dtype).eps
    return max(shape) * eps * singular_values.max().item()


def pod_basis(snapshots:torch.Tensor,
              rank:int,
              keep_only_nonzero:bool = True)->PodBasis:
    """
    Reduce a snapshot matrix to its dominant left singular vectors

    Parameters
    ----------
    snapshots: torch.Tensor
        [n, N] converged solutions as columns, in collection order
    rank: int
        requested number of components
    keep_only_nonzero: bool, optional
        drop components whose singular value is numerically zero, so the
        returned rank may be smaller than requested, by default True

    Returns
    -------
    PodBasis
        (vectors [n, k], singular_values [k], requested_rank)
    """
    check_snapshots(snapshots)
    if rank < 1:
        raise ConfigurationError(f"POD rank must be at least 1, got {rank}")

    U, S, _ = torch.linalg.svd(snapshots, full_matrices=False)
    if S.numel() == 0 or S[0].item() == 0.0:
        raise ConfigurationError("snapshot matrix is identically zero, no coarse space can be built")

    k = min(rank, S.shape[0])
    if keep_only_nonzero:
        nonzero = int((S > zero_threshold(S, snapshots.shape)).sum().item())
        k = min(k, max(nonzero, 1))

    U = U[:, :k].clone()
    S = S[:k].clone()

    # deterministic signs: largest entry of every column is positive
    pivots = U.abs().argmax(dim=0)
    signs = torch.sign(U[pivots, torch.arange(k, device=U.device)])
    signs[signs == 0] = 1
    U = U * signs

    logger.info("POD basis built: %d of %d requested components from %d snapshots of %d dofs",
                k, rank, snapshots.shape[1], snapshots.shape[0])
    return PodBasis(U, S, rank)


def project(basis:PodBasis, x:torch.Tensor)->torch.Tensor:
    """Reduced coordinates ``Phi^T x`` of a vector [n] or a batch [n, m]"""
    if x.shape[0] != basis.num_dofs:
        raise DimensionMismatch("x", tuple(x.shape), f"[{basis.num_dofs}, ...]")
    return basis.vectors.T @ x


def lift(basis:PodBasis, y:torch.Tensor)->torch.Tensor:
    """Full vector ``Phi y`` from reduced coordinates [k] or [k, m]"""
    if y.shape[0] != basis.rank:
        raise DimensionMismatch("y", tuple(y.shape), f"[{basis.rank}, ...]")
    return basis.vectors @ y


def orthonormality_error(basis:PodBasis)->float:
    """Frobenius norm of ``Phi^T Phi - I``"""
    V = basis.vectors
    eye = torch.eye(V.shape[1], dtype=V.dtype, device=V.device)
    return torch.linalg.norm(V.T @ V - eye).item()
