#!/usr/bin/env python
"""
Benchmark: Jacobi vs POD-AMG on the clamped cube family

For growing meshes, runs the streaming solver and compares the baseline
(Jacobi-PCG) solves with the accelerated (POD-AMG) ones.

Key metrics:
- Mean iteration count per phase (lower = better preconditioner)
- Mean wall time per solve, including preconditioner setup
"""

import os
import sys
import time
from dataclasses import dataclass
from typing import List

import torch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from torch_aisolve import (
    AISolveConfig,
    AISolver,
    Elasticity3DProvider,
    Phase,
    normal_parameters,
)


@dataclass
class PhaseResult:
    name: str
    dof: int
    solves: int
    mean_iters: float
    mean_time_ms: float


def run_family(num_elements: int, samples: int, training: int, config: AISolveConfig) -> List[PhaseResult]:
    provider = Elasticity3DProvider(num_elements_per_side=num_elements)
    parameters = normal_parameters(samples, means=[2000, -10], stdevs=[600, 3], seed=0)

    timings = {Phase.COLLECTING: [], Phase.ACCELERATED: []}
    solver = AISolver(training, parameters, provider, config=config)
    stream = iter(solver)
    while True:
        t0 = time.perf_counter()
        response = next(stream, None)
        if response is None:
            break
        timings[response.phase].append((time.perf_counter() - t0) * 1000)

    results = []
    for phase, name in ((Phase.COLLECTING, 'jacobi'), (Phase.ACCELERATED, 'pod-amg')):
        iters = solver.iterations[phase]
        if not iters:
            continue
        # the first accelerated timing also covers training
        times = timings[phase][1:] if phase is Phase.ACCELERATED and len(timings[phase]) > 1 else timings[phase]
        results.append(PhaseResult(name, provider.num_dofs, len(iters),
                                   sum(iters) / len(iters), sum(times) / len(times)))
    return results


def run_benchmark():
    print("=" * 70)
    print("POD2G Benchmark: clamped cube, E ~ N(2000, 600), P ~ N(-10, 3)")
    print("=" * 70)
    print(f"PyTorch: {torch.__version__}")

    config = AISolveConfig(max_iter_fraction=1.0)
    for num_elements in (4, 8, 12):
        print(f"\n--- {num_elements}^3 elements ---")
        print(f"{'Precond':<10} {'DOF':>8} {'Solves':>8} {'Iters':>8} {'Time (ms)':>12}")
        print("-" * 50)
        results = run_family(num_elements, samples=100, training=20, config=config)
        for r in results:
            print(f"{r.name:<10} {r.dof:>8} {r.solves:>8} {r.mean_iters:>8.1f} {r.mean_time_ms:>12.1f}")
        if len(results) == 2:
            print(f"iteration reduction: {results[0].mean_iters / max(results[1].mean_iters, 1):.1f}x")


if __name__ == '__main__':
    run_benchmark()
