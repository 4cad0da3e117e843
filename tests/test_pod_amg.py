"""
Tests for the two-level POD-AMG preconditioner
"""

import logging

import pytest
import torch
import sys

sys.path.insert(0, "..")
from torch_aisolve import (
    CachedSparseMatrix,
    ConfigurationError,
    DimensionMismatch,
    GaussSeidelSmoother,
    PodAmgPreconditionerFactory,
    SmootherConfig,
    pod_basis,
    solve,
)
from torch_aisolve.pod_amg import apply


def poisson_2d(m: int, dtype=torch.float64):
    """5-point Laplacian on an m x m grid with Dirichlet boundaries"""
    idx = torch.arange(m * m).reshape(m, m)
    rows, cols, vals = [idx.flatten()], [idx.flatten()], [torch.full((m * m,), 4.0, dtype=dtype)]
    for a, b in ((idx[1:, :], idx[:-1, :]), (idx[:, 1:], idx[:, :-1])):
        a, b = a.flatten(), b.flatten()
        rows += [a, b]
        cols += [b, a]
        vals += [torch.full((a.numel(),), -1.0, dtype=dtype)] * 2
    return torch.cat(vals), torch.cat(rows), torch.cat(cols), (m * m, m * m)


def family_solutions(A: CachedSparseMatrix, num: int, seed: int = 0):
    """Solutions of A x = b for smooth right-hand sides, as columns"""
    m = int(A.n ** 0.5)
    xs = torch.linspace(0, 1, m, dtype=torch.float64)
    X, Y = torch.meshgrid(xs, xs, indexing="ij")
    g = torch.Generator().manual_seed(seed)
    columns = []
    for _ in range(num):
        a, b = torch.rand(2, generator=g, dtype=torch.float64) * 3
        rhs = (torch.sin(torch.pi * a * X) * torch.cos(torch.pi * b * Y) + 1).flatten()
        columns.append(solve(A, rhs, rtol=1e-12, max_iter_fraction=2.0).x)
    return torch.stack(columns, dim=1)


@pytest.fixture
def poisson():
    return CachedSparseMatrix(*poisson_2d(20))


def test_initialize_once(poisson):
    basis = pod_basis(family_solutions(poisson, 5), 4)
    factory = PodAmgPreconditionerFactory()
    assert not factory.is_initialized
    factory.initialize(basis)
    assert factory.is_initialized
    assert factory.basis is basis
    with pytest.raises(ConfigurationError):
        factory.initialize(basis)


def test_create_before_initialize(poisson):
    with pytest.raises(ConfigurationError):
        PodAmgPreconditionerFactory().create(poisson)


def test_basis_size_mismatch(poisson):
    factory = PodAmgPreconditionerFactory()
    factory.initialize(pod_basis(torch.ones(10, 2, dtype=torch.float64), 1))
    with pytest.raises(DimensionMismatch):
        factory.create(poisson)


def test_coarse_correction_exact_on_span(poisson):
    basis = pod_basis(family_solutions(poisson, 6), 6)
    factory = PodAmgPreconditionerFactory()
    factory.initialize(basis)
    M = factory.create(poisson)

    y = torch.tensor([1.0, -2.0, 0.5, 0.0, 3.0, 1.0], dtype=torch.float64)[:basis.rank]
    x = basis.vectors @ y
    torch.testing.assert_close(M.coarse_correction(poisson.matvec(x)), x)


@pytest.mark.parametrize('num_cycles', [1, 2])
def test_symmetric(poisson, num_cycles):
    factory = PodAmgPreconditionerFactory(SmootherConfig("symmetric", 2), num_cycles=num_cycles)
    factory.initialize(pod_basis(family_solutions(poisson, 4), 4))
    M = factory.create(poisson)

    g = torch.Generator().manual_seed(1)
    u = torch.randn(poisson.n, dtype=torch.float64, generator=g)
    v = torch.randn(poisson.n, dtype=torch.float64, generator=g)
    torch.testing.assert_close(torch.dot(u, M(v)), torch.dot(v, apply(M, u)), rtol=1e-9, atol=1e-12)
    assert torch.dot(u, M(u)) > 0


def test_fewer_iterations_than_baseline(poisson):
    solutions = family_solutions(poisson, 10)
    factory = PodAmgPreconditionerFactory()
    factory.initialize(pod_basis(solutions, 8))

    for j in range(solutions.shape[1]):
        b = poisson.matvec(solutions[:, j])
        baseline = solve(poisson, b)
        accelerated = solve(poisson, b, preconditioner=factory.create(poisson))
        assert accelerated.converged
        assert accelerated.num_iters <= baseline.num_iters
        residual = torch.norm(b - poisson.matvec(accelerated.x)) / torch.norm(b)
        assert residual.item() <= 1e-5


def test_more_cycles_do_not_slow_down(poisson):
    basis = pod_basis(family_solutions(poisson, 6), 4)
    b = torch.ones(poisson.n, dtype=torch.float64)
    iterations = []
    for num_cycles in (1, 3):
        factory = PodAmgPreconditionerFactory(num_cycles=num_cycles)
        factory.initialize(basis)
        iterations.append(solve(poisson, b, preconditioner=factory.create(poisson)).num_iters)
    assert iterations[1] <= iterations[0]


@pytest.mark.parametrize('direction', ['forward', 'backward', 'symmetric'])
def test_gauss_seidel_reduces_error(poisson, direction):
    smoother = GaussSeidelSmoother(poisson, SmootherConfig(direction, 3))
    x_true = torch.linspace(-1, 1, poisson.n, dtype=torch.float64)
    b = poisson.matvec(x_true)
    x = smoother.presmooth(b, torch.zeros_like(b))
    x = smoother.postsmooth(b, x)
    # Gauss-Seidel contracts the error in the energy norm
    e = x - x_true
    assert torch.dot(e, poisson.matvec(e)) < torch.dot(x_true, poisson.matvec(x_true))


def test_forward_sweep_is_lower_triangular_solve(poisson):
    smoother = GaussSeidelSmoother(poisson, SmootherConfig("forward", 1))
    dense = poisson.to_scipy().toarray()
    b = torch.arange(poisson.n, dtype=torch.float64)
    x = smoother.presmooth(b, torch.zeros_like(b))
    expected = torch.linalg.solve_triangular(torch.tensor(dense).tril(), b.unsqueeze(1), upper=False).squeeze(1)
    torch.testing.assert_close(x, expected)


@pytest.mark.parametrize('kwargs', [dict(direction="sideways"), dict(sweeps=0)])
def test_smoother_config_validation(kwargs):
    with pytest.raises(ConfigurationError):
        SmootherConfig(**kwargs)


def test_invalid_cycles():
    with pytest.raises(ConfigurationError):
        PodAmgPreconditionerFactory(num_cycles=0)


@pytest.mark.parametrize('direction', ['forward', 'backward'])
def test_one_directional_smoother_warns(caplog, direction):
    with caplog.at_level(logging.WARNING, logger="torch_aisolve.pod_amg"):
        PodAmgPreconditionerFactory(SmootherConfig(direction, 1))
    assert "not symmetric" in caplog.text


def test_symmetric_smoother_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="torch_aisolve.pod_amg"):
        PodAmgPreconditionerFactory(SmootherConfig("symmetric", 1))
    assert "not symmetric" not in caplog.text
