"""
Streaming POD2G solver over a sequence of parameter vectors.

The run has three phases:

- ``COLLECTING``: the first ``training_count`` systems are solved with the
  baseline PCG and their solutions are registered as snapshots
- ``TRAINING``: entered once, after the last collected response has been
  handed out and only if more parameters follow; builds the POD basis, the
  POD-AMG preconditioner and trains the surrogate
- ``ACCELERATED``: every remaining system is solved with PCG preconditioned
  by the POD-AMG preconditioner

Responses come out lazily and in input order. The solver is single pass:
iterating it a second time raises, a new run needs a new instance.
"""

import collections
import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import torch

from .backends import get_preconditioner
from .check import (
    ConfigurationError,
    DimensionMismatch,
    NumericalNonConvergence,
    check_training_pairs,
)
from .config import AISolveConfig
from .linear_solve import solve
from .pod import PodBasis, lift, pod_basis, project
from .pod_amg import PodAmgPreconditionerFactory
from .provider import CheckedProvider, LinearSystemProvider
from .surrogate import SurrogatePredictor

logger = logging.getLogger(__name__)


class Phase(Enum):
    COLLECTING = "collecting"
    TRAINING = "training"
    ACCELERATED = "accelerated"


class ModelResponse(NamedTuple):
    """Solution of one parameter vector with its solve diagnostics."""
    index: int
    parameters: torch.Tensor
    solution: torch.Tensor
    num_iters: int
    residual: float
    converged: bool
    phase: Phase


class TrainingDataset:
    """
    Parameter vectors and converged solutions matched by input index.

    Registration is keyed by index and guarded by a lock, so pairs can be
    added from worker threads in any order.
    """
    def __init__(self):
        self._parameters: Dict[int, torch.Tensor] = {}
        self._solutions: Dict[int, torch.Tensor] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._solutions)

    def register(self, index: int, parameters: torch.Tensor, solution: torch.Tensor) -> None:
        with self._lock:
            if index in self._solutions:
                raise ConfigurationError(f"training sample {index} registered twice")
            self._parameters[index] = parameters
            self._solutions[index] = solution

    def parameter_matrix(self) -> torch.Tensor:
        """[N, p] parameter vectors as rows, in index order"""
        params = [self._parameters[i] for i in sorted(self._parameters)]
        lengths = {p.shape[0] for p in params}
        if len(lengths) > 1:
            raise ConfigurationError(f"training parameter vectors have different lengths {sorted(lengths)}")
        return torch.stack(params, dim=0)

    def snapshot_matrix(self) -> torch.Tensor:
        """[n, N] solutions as columns, in index order"""
        if len(self._parameters) != len(self._solutions):
            raise ConfigurationError(
                f"{len(self._parameters)} training parameters but {len(self._solutions)} solutions")
        solutions = [self._solutions[i] for i in sorted(self._solutions)]
        if not solutions:
            raise ConfigurationError("no solutions were registered for training")
        num_dofs = solutions[0].shape[0]
        for x in solutions:
            if x.shape[0] != num_dofs:
                raise DimensionMismatch("snapshot", tuple(x.shape), f"[{num_dofs}]")
        return torch.stack(solutions, dim=1)

    def clear(self) -> None:
        with self._lock:
            self._parameters.clear()
            self._solutions.clear()


class AISolver:
    """
    POD2G solver over an ordered sequence of parameter vectors.

    Parameters
    ----------
    training_count : int
        number of leading samples solved exactly and used for training
    parameters : iterable of 1D tensors or a 2D tensor
        parameter vectors in solve order; may be a lazy iterable
    provider : LinearSystemProvider
        maps a parameter vector to its linear system
    surrogate : SurrogatePredictor, optional
        trained once on the reduced coordinates of the collected solutions
    config : AISolveConfig, optional

    Example
    -------
    >>> solver = AISolver(50, parameters, Elasticity3DProvider(), MLPSurrogate())
    >>> for response in solver:
    ...     print(response.index, response.phase, response.num_iters)
    """
    def __init__(self,
                 training_count: int,
                 parameters: Iterable,
                 provider: LinearSystemProvider,
                 surrogate: Optional[SurrogatePredictor] = None,
                 config: Optional[AISolveConfig] = None):
        self.config = (config or AISolveConfig()).validate()
        if isinstance(training_count, bool) or not isinstance(training_count, int) or training_count < 1:
            raise ConfigurationError(f"training_count must be a positive integer, got {training_count!r}")
        if hasattr(parameters, "__len__") and training_count > len(parameters):
            raise ConfigurationError(
                f"training_count ({training_count}) exceeds the number of parameter vectors ({len(parameters)})")
        if self.config.warm_start and surrogate is None:
            raise ConfigurationError("warm_start requires a surrogate")

        self.training_count = training_count
        self.provider = CheckedProvider(provider)
        self.surrogate = surrogate
        self.phase = Phase.COLLECTING
        self.dataset = TrainingDataset()
        self.basis: Optional[PodBasis] = None
        self.preconditioner_factory: Optional[PodAmgPreconditionerFactory] = None
        self.training_events = 0
        self.num_parameters: Optional[int] = None
        self.iterations: Dict[Phase, List[int]] = {Phase.COLLECTING: [], Phase.ACCELERATED: []}

        self._parameters = parameters
        self._started = False
        self._stats_lock = threading.Lock()

    @property
    def num_baseline_solves(self) -> int:
        return len(self.iterations[Phase.COLLECTING])

    @property
    def num_accelerated_solves(self) -> int:
        return len(self.iterations[Phase.ACCELERATED])

    def __iter__(self) -> Iterator[ModelResponse]:
        if self._started:
            raise ConfigurationError("AISolver is single pass and has already been iterated, create a new one")
        self._started = True
        return self._run()

    def responses(self) -> List[torch.Tensor]:
        """Run to completion and return the solution vectors in input order"""
        return [response.solution for response in self]

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------

    def _parameter_vectors(self) -> Iterator[Tuple[int, torch.Tensor]]:
        for index, p in enumerate(self._parameters):
            p = torch.as_tensor(p, dtype=torch.float64)
            if p.ndim != 1:
                raise ConfigurationError(f"parameter vector {index} must be 1D, got shape {tuple(p.shape)}")
            if self.num_parameters is None:
                self.num_parameters = p.shape[0]
            elif p.shape[0] != self.num_parameters:
                raise ConfigurationError(
                    f"parameter vector {index} has length {p.shape[0]}, expected {self.num_parameters}")
            yield index, p

    def _run(self) -> Iterator[ModelResponse]:
        items = self._parameter_vectors()

        for response in self._solve_phase(itertools.islice(items, self.training_count), Phase.COLLECTING):
            self.dataset.register(response.index, response.parameters, response.solution)
            yield response

        upcoming = next(items, None)
        if upcoming is None:
            logger.info("Run ended after %d baseline solves, no acceleration engaged", self.num_baseline_solves)
            return

        self._train()
        yield from self._solve_phase(itertools.chain([upcoming], items), Phase.ACCELERATED)

    def _solve_phase(self, items: Iterator[Tuple[int, torch.Tensor]], phase: Phase) -> Iterator[ModelResponse]:
        if self.config.max_workers is None:
            for index, p in items:
                yield self._solve_one(index, p, phase)
            return
        # at most 2 * max_workers solves are in flight, the input is pulled as results are
        window = 2 * self.config.max_workers
        pending = collections.deque()
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            for index, p in items:
                pending.append(executor.submit(self._solve_one, index, p, phase))
                if len(pending) >= window:
                    yield pending.popleft().result()
            while pending:
                yield pending.popleft().result()

    def _solve_one(self, index: int, parameters: torch.Tensor, phase: Phase) -> ModelResponse:
        system = self.provider(parameters)
        A = system.matrix()
        x0 = None
        if phase is Phase.ACCELERATED:
            preconditioner = self.preconditioner_factory.create(A)
            if self.config.warm_start:
                x0 = lift(self.basis, self.surrogate.predict(parameters).to(self.basis.vectors.dtype))
        else:
            preconditioner = get_preconditioner(A, self.config.baseline_preconditioner)

        result = solve(A, system.b, preconditioner=preconditioner, rtol=self.config.rtol,
                       max_iter_fraction=self.config.max_iter_fraction, x0=x0)
        logger.debug("Sample %d (%s): number of PCG iterations = %d. Dofs = %d.",
                     index, phase.value, result.num_iters, A.n)
        if not result.converged and self.config.on_nonconvergence == "raise":
            raise NumericalNonConvergence(
                f"sample {index} did not converge in the {phase.value} phase "
                f"({result.num_iters} iterations, residual={result.residual:.2e})")

        with self._stats_lock:
            self.iterations[phase].append(result.num_iters)
        return ModelResponse(index, parameters, result.x, result.num_iters,
                             result.residual, result.converged, phase)

    def _train(self) -> None:
        """Collected snapshots -> POD basis, POD-AMG preconditioner and surrogate, exactly once"""
        if self.training_events:
            raise ConfigurationError("training has already happened for this run")
        self.phase = Phase.TRAINING
        if len(self.dataset) != self.training_count:
            raise ConfigurationError(
                f"expected {self.training_count} training solutions, got {len(self.dataset)}")

        parameters = self.dataset.parameter_matrix()
        snapshots = self.dataset.snapshot_matrix()
        self.dataset.clear()

        basis = pod_basis(snapshots, self.config.pod_rank, self.config.keep_only_nonzero)
        factory = PodAmgPreconditionerFactory(self.config.smoother, self.config.num_cycles)
        factory.initialize(basis)

        if self.surrogate is not None:
            reduced = project(basis, snapshots).T
            check_training_pairs(parameters, reduced, expected=self.training_count)
            with torch.random.fork_rng(devices=[], enabled=self.config.seed is not None):
                if self.config.seed is not None:
                    torch.manual_seed(self.config.seed)
                self.surrogate.train(parameters, reduced)
        del snapshots

        self.basis = basis
        self.preconditioner_factory = factory
        self.training_events += 1
        self.phase = Phase.ACCELERATED
        logger.info("Training done on %d samples: POD rank %d, accelerated phase engaged",
                    self.training_count, basis.rank)
