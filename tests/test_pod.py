"""
Tests for the POD basis builder
"""

import pytest
import torch
import sys

sys.path.insert(0, "..")
from torch_aisolve import (
    pod_basis,
    project,
    lift,
    orthonormality_error,
    ConfigurationError,
    DimensionMismatch,
)


def random_snapshots(n: int, num: int, rank: int, seed: int = 0):
    """n x num snapshot matrix of exact rank ``rank``"""
    g = torch.Generator().manual_seed(seed)
    left = torch.randn(n, rank, dtype=torch.float64, generator=g)
    right = torch.randn(rank, num, dtype=torch.float64, generator=g)
    return left @ right


@pytest.mark.parametrize('rank', [1, 4, 8])
@pytest.mark.parametrize('num', [1, 10, 50])
def test_orthonormal_columns(rank, num):
    snapshots = torch.randn(300, num, dtype=torch.float64, generator=torch.Generator().manual_seed(num))
    basis = pod_basis(snapshots, rank)
    assert basis.rank == min(rank, num)
    assert basis.requested_rank == rank
    assert orthonormality_error(basis) < 1e-10


def test_singular_values_descending():
    basis = pod_basis(random_snapshots(100, 20, 20), 10)
    s = basis.singular_values
    assert (s[:-1] >= s[1:]).all()


def test_keep_only_nonzero_reduces_rank():
    snapshots = random_snapshots(200, 30, 3)
    reduced = pod_basis(snapshots, 8, keep_only_nonzero=True)
    full = pod_basis(snapshots, 8, keep_only_nonzero=False)
    assert reduced.rank == 3
    assert full.rank == 8
    assert orthonormality_error(full) < 1e-10


def test_scaled_copies_give_rank_one():
    u = torch.linspace(0, 1, 64, dtype=torch.float64) ** 2
    snapshots = torch.stack([2.0 * u, -0.5 * u, 7.0 * u], dim=1)
    basis = pod_basis(snapshots, 8)
    assert basis.rank == 1
    torch.testing.assert_close(basis.vectors[:, 0], u / u.norm())


def test_single_snapshot():
    x = torch.randn(50, 1, dtype=torch.float64, generator=torch.Generator().manual_seed(1))
    basis = pod_basis(x, 8)
    assert basis.rank == 1
    torch.testing.assert_close(lift(basis, project(basis, x[:, 0])), x[:, 0])


def test_snapshots_are_not_centered():
    # every column equals the same offset vector: centering would leave nothing
    offset = torch.ones(40, dtype=torch.float64)
    snapshots = offset.unsqueeze(1).repeat(1, 5)
    basis = pod_basis(snapshots, 2)
    assert basis.rank == 1
    torch.testing.assert_close(lift(basis, project(basis, offset)), offset)


def test_span_reproduces_snapshots():
    snapshots = random_snapshots(120, 6, 6, seed=2)
    basis = pod_basis(snapshots, 6)
    torch.testing.assert_close(lift(basis, project(basis, snapshots)), snapshots)


def test_deterministic_signs():
    snapshots = random_snapshots(80, 10, 4, seed=3)
    a = pod_basis(snapshots, 4)
    b = pod_basis(snapshots.clone(), 4)
    torch.testing.assert_close(a.vectors, b.vectors)
    pivots = a.vectors.abs().argmax(dim=0)
    assert (a.vectors[pivots, torch.arange(a.rank)] > 0).all()


def test_empty_snapshot_matrix():
    with pytest.raises(ConfigurationError):
        pod_basis(torch.zeros(10, 0, dtype=torch.float64), 4)


def test_zero_snapshot_matrix():
    with pytest.raises(ConfigurationError):
        pod_basis(torch.zeros(10, 3, dtype=torch.float64), 4)


def test_invalid_rank():
    with pytest.raises(ConfigurationError):
        pod_basis(torch.ones(10, 3, dtype=torch.float64), 0)


def test_not_a_matrix():
    with pytest.raises(ConfigurationError):
        pod_basis(torch.ones(10, dtype=torch.float64), 1)


def test_projection_dimension_checks():
    basis = pod_basis(random_snapshots(30, 4, 4), 4)
    with pytest.raises(DimensionMismatch):
        project(basis, torch.ones(31, dtype=torch.float64))
    with pytest.raises(DimensionMismatch):
        lift(basis, torch.ones(5, dtype=torch.float64))
