import pytest
import torch
from scipy.sparse import coo_matrix
from scipy.sparse.linalg import spsolve as sp_spsolve
from itertools import product
import sys
sys.path.append("..")
from torch_aisolve import (
    spsolve,
    solve,
    CachedSparseMatrix,
    NumericalNonConvergence,
    ShapeException,
    max_iterations,
    spd_coo,
)


def create_tridiagonal_spd(n: int, dtype=torch.float64):
    """Create tridiagonal SPD matrix (like 1D Poisson)."""
    i = torch.arange(n)
    row = torch.cat([i, i[1:], i[:-1]])
    col = torch.cat([i, i[:-1], i[1:]])
    val = torch.cat([torch.full((n,), 2.0, dtype=dtype),
                     torch.full((n - 1,), -1.0, dtype=dtype),
                     torch.full((n - 1,), -1.0, dtype=dtype)])
    return val, row, col, (n, n)


@pytest.mark.parametrize(
    ['n', 'preconditioner'],
    product([16, 128, 512],
            ['jacobi', 'none'])
    )
def test_spsolve(n, preconditioner):
    val, row, col, shape = spd_coo(n, density=0.1, seed=n)
    b = torch.randn(n, dtype=torch.float64, generator=torch.Generator().manual_seed(0))

    result = spsolve(val, row, col, shape, b, preconditioner=preconditioner,
                     rtol=1e-10, max_iter_fraction=1.0)
    assert result.converged
    assert result.residual <= 1e-10

    A_scipy = coo_matrix((val.numpy(), (row.numpy(), col.numpy())), shape=shape).tocsc()
    x2 = torch.tensor(sp_spsolve(A_scipy, b.numpy()))
    torch.testing.assert_close(result.x, x2, rtol=1e-6, atol=1e-8)


def test_relative_residual_tolerance():
    val, row, col, shape = spd_coo(200, density=0.05, seed=1)
    A = CachedSparseMatrix(val, row, col, shape)
    b = torch.ones(200, dtype=torch.float64)
    result = solve(A, b, rtol=1e-6)

    true_residual = torch.norm(b - A.matvec(result.x)) / torch.norm(b)
    assert result.converged
    assert true_residual.item() < 1e-5


def test_iteration_cap_scales_with_order():
    assert max_iterations(100, 0.5) == 50
    assert max_iterations(101, 0.5) == 51
    assert max_iterations(3, 0.01) == 1


def test_nonconvergence_returns_best_iterate():
    n = 200
    val, row, col, shape = create_tridiagonal_spd(n)
    b = torch.ones(n, dtype=torch.float64)

    with pytest.warns(NumericalNonConvergence):
        result = spsolve(val, row, col, shape, b, preconditioner='none',
                         rtol=1e-12, max_iter_fraction=0.05)

    assert not result.converged
    assert result.num_iters == max_iterations(n, 0.05)
    assert torch.isfinite(result.x).all()
    assert result.residual > 1e-12


def test_zero_rhs():
    val, row, col, shape = spd_coo(32, seed=3)
    result = spsolve(val, row, col, shape, torch.zeros(32, dtype=torch.float64))
    assert result.converged
    assert result.num_iters == 0
    assert torch.count_nonzero(result.x) == 0


def test_initial_guess_at_solution():
    val, row, col, shape = spd_coo(64, seed=4)
    A = CachedSparseMatrix(val, row, col, shape)
    x = torch.linspace(-1, 1, 64, dtype=torch.float64)
    b = A.matvec(x)
    result = solve(A, b, x0=x)
    assert result.num_iters == 0
    torch.testing.assert_close(result.x, x)


def test_deterministic():
    val, row, col, shape = spd_coo(256, density=0.05, seed=5)
    b = torch.randn(256, dtype=torch.float64, generator=torch.Generator().manual_seed(5))
    first = spsolve(val, row, col, shape, b)
    second = spsolve(val, row, col, shape, b)
    assert first.num_iters == second.num_iters
    torch.testing.assert_close(first.x, second.x, rtol=0, atol=1e-14)


def test_jacobi_beats_identity_on_badly_scaled_matrix():
    n = 100
    val, row, col, shape = create_tridiagonal_spd(n)
    scale = torch.logspace(0, 4, n, dtype=torch.float64)
    val = val * scale[row].sqrt() * scale[col].sqrt()
    b = torch.ones(n, dtype=torch.float64)

    jacobi = spsolve(val, row, col, shape, b, preconditioner='jacobi', max_iter_fraction=5.0)
    plain = spsolve(val, row, col, shape, b, preconditioner='none', max_iter_fraction=5.0)
    assert jacobi.num_iters < plain.num_iters


def test_callable_preconditioner():
    val, row, col, shape = spd_coo(64, seed=6)
    A_dense = torch.sparse_coo_tensor(torch.stack([row, col]), val, shape).to_dense()
    A_inv = torch.linalg.inv(A_dense)
    b = torch.randn(64, dtype=torch.float64, generator=torch.Generator().manual_seed(6))

    result = spsolve(val, row, col, shape, b, preconditioner=lambda r: A_inv @ r)
    assert result.converged
    assert result.num_iters == 1


@pytest.mark.parametrize('bad', ['shape', 'rhs'])
def test_shape_checks(bad):
    val, row, col, shape = spd_coo(16, seed=7)
    b = torch.ones(16, dtype=torch.float64)
    with pytest.raises(ShapeException):
        if bad == 'shape':
            spsolve(val, row, col, (16, 17), b)
        else:
            spsolve(val, row, col, shape, torch.ones(15, dtype=torch.float64))


if __name__ == '__main__':
    test_spsolve(128, 'jacobi')
