"""
Categorical emission distribution over a finite alphabet.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from .base import EmissionModel, draw_index, validate_weights
from ..config import get_config
from ..exceptions import ConfigurationError, DomainError


class DiscreteEmission(EmissionModel):
    """
    Probability vector over symbols ``0 .. n_symbols - 1``.

    Either pass an explicit probability vector or ``n_symbols`` for a uniform
    distribution. The alphabet size never changes after construction.
    """

    family = 'discrete'

    def __init__(self, probabilities=None, n_symbols: Optional[int] = None):
        if probabilities is None:
            if n_symbols is None or n_symbols < 1:
                raise ConfigurationError("either probabilities or n_symbols >= 1 is required")
            probabilities = np.ones(n_symbols) / n_symbols

        self._probabilities = self._check_probabilities(probabilities, n_symbols)

    @staticmethod
    def _check_probabilities(probabilities, n_symbols: Optional[int]) -> np.ndarray:
        probabilities = np.array(probabilities, dtype=float)
        tolerance = get_config('numerics', 'stochastic_tolerance')

        if probabilities.ndim != 1 or probabilities.size == 0:
            raise ConfigurationError(
                f"emission probabilities must be a non-empty vector, got shape {probabilities.shape}"
            )
        if n_symbols is not None and probabilities.size != n_symbols:
            raise ConfigurationError(
                f"got {probabilities.size} probabilities for {n_symbols} symbols"
            )
        if np.any(probabilities < 0) or not np.all(np.isfinite(probabilities)):
            raise ConfigurationError("emission probabilities must be finite and non-negative")
        if abs(probabilities.sum() - 1.0) > tolerance:
            raise ConfigurationError(
                f"emission probabilities sum to {probabilities.sum()}, expected 1.0"
            )
        return probabilities

    @property
    def n_symbols(self) -> int:
        return self._probabilities.size

    @property
    def probabilities(self) -> np.ndarray:
        return self._probabilities.copy()

    @probabilities.setter
    def probabilities(self, value) -> None:
        self._probabilities = self._check_probabilities(value, self.n_symbols)

    @property
    def shape(self) -> Tuple[int, ...]:
        return (self.n_symbols,)

    def validate(self, observations) -> np.ndarray:
        observations = np.asarray(observations)

        if observations.ndim != 1 or observations.size == 0:
            raise DomainError(
                f"discrete observations must be a non-empty 1-D sequence, got shape {observations.shape}"
            )
        if observations.dtype.kind not in 'iu':
            if observations.dtype.kind != 'f' or not np.all(np.mod(observations, 1) == 0):
                raise DomainError("discrete observations must be integer symbols")
            observations = observations.astype(np.int64)
        if np.any(observations < 0) or np.any(observations >= self.n_symbols):
            raise DomainError(f"observations must be in range [0, {self.n_symbols - 1}]")

        return observations.astype(np.int64, copy=False)

    def log_probabilities(self, observations: np.ndarray) -> np.ndarray:
        with np.errstate(divide='ignore'):
            return np.log(self._probabilities[observations])

    def _symbol(self, observation) -> int:
        return int(self.validate(np.atleast_1d(observation))[0])

    def probability(self, observation) -> float:
        return float(self._probabilities[self._symbol(observation)])

    def log_probability(self, observation) -> float:
        with np.errstate(divide='ignore'):
            return float(np.log(self.probability(observation)))

    def random(self, rng: np.random.Generator) -> int:
        return draw_index(self._probabilities, rng)

    def reestimate(self, observations, weights=None) -> None:
        observations = self.validate(observations)
        if weights is None:
            weights = np.ones(observations.size)
        weights = validate_weights(weights, observations.size)

        counts = np.bincount(observations, weights=weights, minlength=self.n_symbols)
        self._probabilities = counts / counts.sum()

    def perturbed(self, rng: np.random.Generator) -> 'DiscreteEmission':
        probabilities = rng.random(self.n_symbols)
        return DiscreteEmission(probabilities / probabilities.sum())

    def get_parameters(self) -> Dict[str, Any]:
        return {'probabilities': self.probabilities}

    def __repr__(self) -> str:
        return f"DiscreteEmission(n_symbols={self.n_symbols})"
