"""Parameter-to-response surrogates trained once on the collected solutions."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import torch
import torch.nn as nn

from .check import ConfigurationError, check_training_pairs

logger = logging.getLogger(__name__)


class SurrogatePredictor(ABC):
    """
    Trainable mapping from a parameter vector to an approximate response.

    ``train`` receives one sample per row and is called at most once per run.
    """

    @property
    @abstractmethod
    def is_trained(self) -> bool:
        ...

    @abstractmethod
    def train(self, parameters: torch.Tensor, responses: torch.Tensor) -> None:
        ...

    @abstractmethod
    def predict(self, parameters: torch.Tensor) -> torch.Tensor:
        ...


class MLP(nn.Module):
    def __init__(
        self,
        in_dim: int,
        out_dim: int,
        hidden_dim: int = 32,
        depth: int = 3,
    ) -> None:
        super().__init__()
        self.layers = nn.Sequential(*self._build_layers(in_dim, out_dim, hidden_dim, depth))

    def _build_layers(
        self, in_dim: int, out_dim: int, hidden_dim: int, depth: int
    ) -> Sequence[nn.Module]:
        modules: List[nn.Module] = []
        dims = [in_dim] + [hidden_dim] * max(depth - 1, 0) + [out_dim]
        for i, (src, dst) in enumerate(zip(dims[:-1], dims[1:])):
            modules.append(nn.Linear(src, dst))
            if i < len(dims) - 2:
                modules.append(nn.Tanh())
        return modules

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.layers(x)


class MLPSurrogate(SurrogatePredictor):
    """
    Feed-forward network trained full-batch with Adam on standardized data.

    Inputs and outputs are standardized with the training statistics;
    constant columns keep a unit scale so a single training sample is valid.
    """

    def __init__(
        self,
        hidden_dim: int = 32,
        depth: int = 3,
        epochs: int = 500,
        lr: float = 1e-2,
        seed: Optional[int] = None,
    ) -> None:
        self.hidden_dim = hidden_dim
        self.depth = depth
        self.epochs = epochs
        self.lr = lr
        self.seed = seed
        self.model: Optional[MLP] = None
        self.loss_history: List[float] = []
        self._stats = None

    @property
    def is_trained(self) -> bool:
        return self.model is not None

    @staticmethod
    def _standardization(x: torch.Tensor):
        mean = x.mean(dim=0)
        std = x.std(dim=0, unbiased=False)
        std = torch.where(std > 0, std, torch.ones_like(std))
        return mean, std

    def train(self, parameters: torch.Tensor, responses: torch.Tensor) -> None:
        if self.model is not None:
            raise ConfigurationError("surrogate has already been trained")
        check_training_pairs(parameters, responses)
        dtype = torch.float64
        X = parameters.detach().to(dtype)
        Y = responses.detach().to(dtype)
        x_mean, x_std = self._standardization(X)
        y_mean, y_std = self._standardization(Y)
        X = (X - x_mean) / x_std
        Y = (Y - y_mean) / y_std

        # the seed only drives the weight initialization, the caller's generator is restored
        with torch.random.fork_rng(devices=[], enabled=self.seed is not None):
            if self.seed is not None:
                torch.manual_seed(self.seed)
            model = MLP(X.shape[1], Y.shape[1], self.hidden_dim, self.depth).to(dtype)
        optimizer = torch.optim.Adam(model.parameters(), lr=self.lr)
        loss_fn = nn.MSELoss()

        model.train()
        for _ in range(self.epochs):
            optimizer.zero_grad()
            loss = loss_fn(model(X), Y)
            loss.backward()
            optimizer.step()
            self.loss_history.append(loss.item())
        model.eval()

        self.model = model
        self._stats = (x_mean, x_std, y_mean, y_std)
        logger.info("Surrogate trained on %d samples (final loss %.3e)",
                    X.shape[0], self.loss_history[-1] if self.loss_history else float("nan"))

    @torch.no_grad()
    def predict(self, parameters: torch.Tensor) -> torch.Tensor:
        if self.model is None:
            raise ConfigurationError("surrogate used before training")
        x_mean, x_std, y_mean, y_std = self._stats
        X = parameters.detach().to(x_mean.dtype)
        single = X.ndim == 1
        if single:
            X = X.unsqueeze(0)
        Y = self.model((X - x_mean) / x_std) * y_std + y_mean
        return Y.squeeze(0) if single else Y
