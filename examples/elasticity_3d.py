#!/usr/bin/env python
"""
Clamped cube under a random load: POD2G on 300 samples

The Young's modulus E and the load P are sampled from normal distributions.
The first 50 systems are solved with Jacobi-PCG and collected; the remaining
250 are solved with PCG preconditioned by the POD-AMG preconditioner built
from those 50 solutions.

For this family u(E, P) = (P / E) u(1, 1), so the mean vertical displacement
of the monitor node is checked against the sample mean of P / E.
"""

import argparse
import logging
import time

import torch

from torch_aisolve import (
    AISolveConfig,
    AISolver,
    Elasticity3DProvider,
    MLPSurrogate,
    Phase,
    normal_parameters,
    setup_logging,
    solve_system,
)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--elements", type=int, default=8, help="elements along each side of the cube")
    parser.add_argument("--samples", type=int, default=300)
    parser.add_argument("--training", type=int, default=50)
    parser.add_argument("--rank", type=int, default=8, help="requested POD rank")
    parser.add_argument("--workers", type=int, default=None, help="thread pool size, sequential if omitted")
    parser.add_argument("--seed", type=int, default=13)
    parser.add_argument("--debug", action="store_true", help="log the PCG iterations of every solve")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    provider = Elasticity3DProvider(num_elements_per_side=args.elements)
    parameters = normal_parameters(args.samples, means=[2000, -10], stdevs=[600, 3], seed=args.seed)

    config = AISolveConfig(pod_rank=args.rank, max_workers=args.workers, seed=args.seed)
    solver = AISolver(args.training, parameters, provider, MLPSurrogate(seed=args.seed), config)

    t0 = time.perf_counter()
    uz = [provider.monitored_value(response.solution) for response in solver]
    elapsed = time.perf_counter() - t0

    unit = solve_system(provider(torch.tensor([1.0, 1.0])), rtol=1e-10, max_iter_fraction=2.0).x
    expected = provider.monitored_value(unit) * (parameters[:, 1] / parameters[:, 0]).mean().item()

    baseline = solver.iterations[Phase.COLLECTING]
    accelerated = solver.iterations[Phase.ACCELERATED]
    print("=" * 60)
    print(f"dofs                     : {provider.num_dofs}")
    print(f"baseline solves          : {len(baseline)}, mean iterations {sum(baseline) / len(baseline):.1f}")
    if accelerated:
        print(f"accelerated solves       : {len(accelerated)}, "
              f"mean iterations {sum(accelerated) / len(accelerated):.1f}")
        print(f"POD rank                 : {solver.basis.rank}")
    print(f"mean uz at monitor node  : {sum(uz) / len(uz):.6e}")
    print(f"expected from mean(P / E): {expected:.6e}")
    print(f"wall time                : {elapsed:.2f} s")


if __name__ == '__main__':
    main()
