"""
Emission model interface.

Every hidden state owns one emission model. The algorithms only rely on the
capability set defined here, so the discrete and Gaussian variants are
interchangeable inside a HiddenMarkovModel.
"""

import abc
import copy
from typing import Any, Dict, Tuple

import numpy as np

from ..exceptions import DomainError


def draw_index(probabilities: np.ndarray, rng: np.random.Generator) -> int:
    """
    Draw an index by cumulative-sum inverse sampling.

    Args:
        probabilities: Probability vector (non-negative, sums to 1)
        rng: Caller-owned random generator

    Returns:
        Index i such that cumsum[i - 1] <= u < cumsum[i] for u ~ U[0, 1)
    """
    cumulative = np.cumsum(probabilities)
    index = int(np.searchsorted(cumulative, rng.random(), side='right'))
    # Rounding can leave cumulative[-1] slightly below 1; never land on a zero entry
    return min(index, int(np.flatnonzero(probabilities)[-1]))


def validate_weights(weights, n_observations: int) -> np.ndarray:
    """
    Validate a weight vector passed to ``reestimate``.

    Raises:
        DomainError: If weights are misshapen, negative, non-finite or all zero
    """
    weights = np.asarray(weights, dtype=float)
    if weights.shape != (n_observations,):
        raise DomainError(
            f"weights shape {weights.shape} doesn't match {n_observations} observations"
        )
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise DomainError("weights must be finite and non-negative")
    if weights.sum() <= 0:
        raise DomainError("cannot re-estimate emission parameters from zero total weight")
    return weights


class EmissionModel(abc.ABC):
    """
    Per-state probability distribution over observations.

    Subclasses implement probability evaluation, sampling and in-place
    re-estimation from weighted observations. ``validate`` and
    ``log_probabilities`` are the vectorised entry points used by the
    decoding, estimation and training code.
    """

    #: Short name of the variant, stored alongside persisted models
    family: str = ''

    @abc.abstractmethod
    def validate(self, observations) -> np.ndarray:
        """
        Coerce an observation sequence to its canonical array form.

        Raises:
            DomainError: If the sequence is empty or outside the model's domain
        """

    @abc.abstractmethod
    def log_probabilities(self, observations: np.ndarray) -> np.ndarray:
        """Log probability (or density) of every element of a validated sequence."""

    @abc.abstractmethod
    def log_probability(self, observation) -> float:
        """Log probability of a single observation; ``-inf`` if impossible."""

    def probability(self, observation) -> float:
        """Probability (or density) of a single observation."""
        return float(np.exp(self.log_probability(observation)))

    @abc.abstractmethod
    def random(self, rng: np.random.Generator):
        """Draw one observation from the distribution."""

    @abc.abstractmethod
    def reestimate(self, observations, weights=None) -> None:
        """
        Overwrite the parameters from weighted observations.

        Args:
            observations: Observation sequence (validated against this model)
            weights: Non-negative weight per observation, default 1 each
        """

    @abc.abstractmethod
    def perturbed(self, rng: np.random.Generator) -> 'EmissionModel':
        """Return a randomly perturbed copy, used to break symmetry before EM."""

    @property
    @abc.abstractmethod
    def shape(self) -> Tuple[int, ...]:
        """Alphabet size or vector dimension, fixed for the model's lifetime."""

    @abc.abstractmethod
    def get_parameters(self) -> Dict[str, Any]:
        """Copies of the distribution parameters."""

    def copy(self) -> 'EmissionModel':
        return copy.deepcopy(self)
