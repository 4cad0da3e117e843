"""
torch-aisolve: POD2G accelerated solves of parameterized sparse systems

Solves a family of sparse SPD systems ``A(mu) x = b(mu)`` that share their
size and sparsity pattern. The first solves run a plain PCG and their
solutions are collected; once enough have been seen, a POD basis of the
solutions becomes the coarse space of a two-level (POD-AMG) preconditioner
that accelerates every later solve.

Components
----------
- Solve kernel: PCG on a cached CSR matrix with a Jacobi baseline
- POD: orthonormal basis of raw (uncentered) snapshots
- POD-AMG: Gauss-Seidel smoothing plus Galerkin coarse correction
- Surrogate: MLP from parameters to reduced coordinates
- AISolver: streaming orchestrator, collect -> train -> accelerate

Usage
-----
>>> import torch
>>> from torch_aisolve import AISolver, Elasticity3DProvider, MLPSurrogate, normal_parameters
>>>
>>> provider = Elasticity3DProvider(num_elements_per_side=8)
>>> parameters = normal_parameters(300, means=[2000, -10], stdevs=[600, 3], seed=13)
>>> solver = AISolver(50, parameters, provider, MLPSurrogate(seed=13))
>>> responses = list(solver)  # 50 baseline solves, 1 training event, 250 accelerated
>>> uz = [provider.monitored_value(r.solution) for r in responses]
"""

from .check import (
    ConfigurationError,
    ShapeException,
    DimensionMismatch,
    NumericalNonConvergence,
)

from .config import (
    AISolveConfig,
    SmootherConfig,
)

from .backends import (
    SolveResult,
    CachedSparseMatrix,
    jacobi_preconditioner,
    identity_preconditioner,
    get_preconditioner,
    max_iterations,
    pcg_solve,
)

from .linear_solve import (
    solve,
    spsolve,
    solve_system,
)

from .pod import (
    PodBasis,
    pod_basis,
    project,
    lift,
    orthonormality_error,
)

from .pod_amg import (
    GaussSeidelSmoother,
    PodAmgPreconditioner,
    PodAmgPreconditionerFactory,
)

from .provider import (
    LinearSystem,
    LinearSystemProvider,
    CheckedProvider,
)

from .surrogate import (
    SurrogatePredictor,
    MLPSurrogate,
)

from .orchestrator import (
    AISolver,
    ModelResponse,
    Phase,
    TrainingDataset,
)

from .problems import (
    Elasticity3DProvider,
    mean_monitored_response,
)

from .random import (
    normal_parameters,
    spd_coo,
)

from .logging_config import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ConfigurationError",
    "ShapeException",
    "DimensionMismatch",
    "NumericalNonConvergence",
    # Configuration
    "AISolveConfig",
    "SmootherConfig",
    # Solve kernel
    "SolveResult",
    "CachedSparseMatrix",
    "jacobi_preconditioner",
    "identity_preconditioner",
    "get_preconditioner",
    "max_iterations",
    "pcg_solve",
    "solve",
    "spsolve",
    "solve_system",
    # POD
    "PodBasis",
    "pod_basis",
    "project",
    "lift",
    "orthonormality_error",
    # POD-AMG
    "GaussSeidelSmoother",
    "PodAmgPreconditioner",
    "PodAmgPreconditionerFactory",
    # Systems
    "LinearSystem",
    "LinearSystemProvider",
    "CheckedProvider",
    # Surrogate
    "SurrogatePredictor",
    "MLPSurrogate",
    # Orchestrator
    "AISolver",
    "ModelResponse",
    "Phase",
    "TrainingDataset",
    # Reference problem
    "Elasticity3DProvider",
    "mean_monitored_response",
    "normal_parameters",
    "spd_coo",
    # Logging
    "setup_logging",
    # Version
    "__version__",
]
