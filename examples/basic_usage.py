#!/usr/bin/env python
"""
Basic Usage Examples for torch-aisolve

This example demonstrates:
1. Solving one sparse SPD system with PCG
2. Building a POD basis from solutions
3. Preconditioning a new solve with POD-AMG
4. Running the streaming solver on a small family
"""

import torch
from torch_aisolve import (
    AISolver,
    CachedSparseMatrix,
    LinearSystem,
    PodAmgPreconditionerFactory,
    SmootherConfig,
    pod_basis,
    solve,
    spd_coo,
)


# =============================================================================
# 1. One solve
# =============================================================================

def example_1_solve():
    """Jacobi-PCG on a random SPD matrix."""
    val, row, col, shape = spd_coo(500, density=0.01, seed=0)
    A = CachedSparseMatrix(val, row, col, shape)
    b = torch.ones(500, dtype=torch.float64)

    result = solve(A, b, preconditioner='jacobi', rtol=1e-8)
    print(f"Jacobi-PCG: {result.num_iters} iterations, residual {result.residual:.1e}")
    return A


# =============================================================================
# 2. POD basis
# =============================================================================

def example_2_pod(A):
    """Collect solutions for a few right-hand sides and reduce them."""
    t = torch.linspace(0, 1, A.n, dtype=torch.float64)
    snapshots = torch.stack([solve(A, 1.0 + a * t, rtol=1e-10).x for a in (-1.0, -0.3, 0.4, 1.0)], dim=1)
    basis = pod_basis(snapshots, rank=8)
    # the right-hand sides span a plane, so two singular values dominate
    print(f"POD rank {basis.rank} of {basis.requested_rank}, singular values {basis.singular_values.tolist()}")
    return basis


# =============================================================================
# 3. POD-AMG
# =============================================================================

def example_3_pod_amg(A, basis):
    """Two-level preconditioner with the POD basis as coarse space."""
    factory = PodAmgPreconditionerFactory(SmootherConfig("symmetric", sweeps=1))
    factory.initialize(basis)

    b = 1.0 + 0.7 * torch.linspace(0, 1, A.n, dtype=torch.float64)
    baseline = solve(A, b, preconditioner='jacobi', rtol=1e-8)
    accelerated = solve(A, b, preconditioner=factory.create(A), rtol=1e-8)
    print(f"Jacobi: {baseline.num_iters} iterations, POD-AMG: {accelerated.num_iters} iterations")


# =============================================================================
# 4. Streaming solver
# =============================================================================

def example_4_streaming():
    """A(mu) = mu A_1 with b fixed: collect 3, accelerate the rest."""
    val, row, col, shape = spd_coo(300, density=0.02, seed=1)
    b = torch.ones(300, dtype=torch.float64)

    def provider(parameters):
        return LinearSystem(val * float(parameters[0]), row, col, shape, b)

    parameters = torch.linspace(1, 5, 10, dtype=torch.float64).unsqueeze(1)
    for response in AISolver(3, parameters, provider):
        print(f"sample {response.index}: {response.phase.value:<12} {response.num_iters} iterations")


if __name__ == '__main__':
    A = example_1_solve()
    basis = example_2_pod(A)
    example_3_pod_amg(A, basis)
    example_4_streaming()
