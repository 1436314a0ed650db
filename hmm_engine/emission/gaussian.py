"""
Multivariate Gaussian emission distribution.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy.stats import multivariate_normal

from .base import EmissionModel, validate_weights
from ..config import get_config
from ..exceptions import ConfigurationError, DomainError


class GaussianEmission(EmissionModel):
    """
    Gaussian density with a full covariance matrix.

    Construct from an explicit ``mean`` and ``covariance`` or from
    ``dimension`` alone (zero mean, identity covariance). Observation
    sequences are ``(T, dimension)`` arrays; a 1-D sequence is accepted
    when ``dimension == 1``.
    """

    family = 'gaussian'

    def __init__(self, mean=None, covariance=None, dimension: Optional[int] = None):
        if mean is None:
            if dimension is None or dimension < 1:
                raise ConfigurationError("either mean or dimension >= 1 is required")
            mean = np.zeros(dimension)
        mean = np.array(mean, dtype=float)
        if mean.ndim != 1 or mean.size == 0:
            raise ConfigurationError(f"mean must be a non-empty vector, got shape {mean.shape}")
        if dimension is not None and mean.size != dimension:
            raise ConfigurationError(f"mean has {mean.size} entries for dimension {dimension}")

        if covariance is None:
            covariance = np.eye(mean.size)
        covariance = np.array(covariance, dtype=float)
        if covariance.shape != (mean.size, mean.size):
            raise ConfigurationError(
                f"covariance shape {covariance.shape} doesn't match mean dimension {mean.size}"
            )
        if not np.all(np.isfinite(mean)) or not np.all(np.isfinite(covariance)):
            raise ConfigurationError("mean and covariance must be finite")
        if not np.allclose(covariance, covariance.T):
            raise ConfigurationError("covariance must be symmetric")
        if self._is_singular(covariance):
            raise ConfigurationError("covariance must be positive definite")

        self._mean = mean
        self._covariance = covariance
        self._refresh()

    @staticmethod
    def _is_singular(covariance: np.ndarray) -> bool:
        tolerance = get_config('numerics', 'singular_tolerance')
        eigenvalues = np.linalg.eigvalsh(covariance)
        return eigenvalues[0] <= tolerance * max(1.0, eigenvalues[-1])

    def _refresh(self) -> None:
        self._density = multivariate_normal(mean=self._mean, cov=self._covariance)

    # The frozen density is rebuilt rather than pickled
    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        del state['_density']
        return state

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)
        self._refresh()

    @property
    def dimension(self) -> int:
        return self._mean.size

    @property
    def mean(self) -> np.ndarray:
        return self._mean.copy()

    @property
    def covariance(self) -> np.ndarray:
        return self._covariance.copy()

    @property
    def shape(self) -> Tuple[int, ...]:
        return (self.dimension,)

    def validate(self, observations) -> np.ndarray:
        observations = np.asarray(observations, dtype=float)

        if observations.ndim == 1 and self.dimension == 1:
            observations = observations.reshape(-1, 1)
        if observations.ndim != 2 or observations.shape[0] == 0:
            raise DomainError(
                f"Gaussian observations must be a non-empty (T, {self.dimension}) array, "
                f"got shape {observations.shape}"
            )
        if observations.shape[1] != self.dimension:
            raise DomainError(
                f"observation dimension {observations.shape[1]} doesn't match "
                f"model dimension {self.dimension}"
            )
        if not np.all(np.isfinite(observations)):
            raise DomainError("observations must be finite")

        return observations

    def log_probabilities(self, observations: np.ndarray) -> np.ndarray:
        # scipy squeezes length-1 results to a scalar
        return np.atleast_1d(self._density.logpdf(observations))

    def log_probability(self, observation) -> float:
        observation = self.validate(np.atleast_2d(observation))
        return float(self.log_probabilities(observation)[0])

    def random(self, rng: np.random.Generator) -> np.ndarray:
        return rng.multivariate_normal(self._mean, self._covariance)

    def reestimate(self, observations, weights=None) -> None:
        observations = self.validate(observations)
        n_observations = observations.shape[0]
        if weights is None:
            weights = np.ones(n_observations)
        weights = validate_weights(weights, n_observations)

        total = weights.sum()
        mean = weights @ observations / total
        centered = observations - mean
        covariance = (centered * weights[:, np.newaxis]).T @ centered / total
        covariance = (covariance + covariance.T) / 2

        if self._is_singular(covariance):
            raise DomainError(
                f"re-estimated covariance is singular ({n_observations} observations, "
                f"total weight {total:.6g})"
            )

        self._mean = mean
        self._covariance = covariance
        self._refresh()

    def perturbed(self, rng: np.random.Generator) -> 'GaussianEmission':
        shift = rng.standard_normal(self.dimension) * np.sqrt(np.diag(self._covariance))
        return GaussianEmission(self._mean + shift, self._covariance)

    def get_parameters(self) -> Dict[str, Any]:
        return {'mean': self.mean, 'covariance': self.covariance}

    def __repr__(self) -> str:
        return f"GaussianEmission(dimension={self.dimension})"
