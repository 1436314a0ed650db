"""
Hidden Markov Model container.

This module defines the HiddenMarkovModel: one TransitionModel plus one
EmissionModel per hidden state. It is the unit of training and inference;
decoding, estimation, scoring and sampling live in ``hmm_engine.infer`` and
are exposed here as convenience methods.
"""

import copy
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .transition import TransitionModel
from ..emission.base import EmissionModel
from ..exceptions import ConfigurationError, DomainError
from ..infer import decoder, estimator, sampler, scorer
from ..logger import get_logger

logger = get_logger(__name__)


class HiddenMarkovModel:
    """
    Hidden Markov Model with a pluggable emission distribution.

    All emission models must be of the same variant and shape (alphabet size
    or vector dimension). Transition probabilities are column-stochastic:
    ``transition.matrix[destination, source]``.

    The model is only mutated by ``HMMTrainer``; every other operation
    treats it as read-only, so decoding, scoring and sampling may run
    concurrently from several threads. Training needs exclusive access.
    """

    def __init__(self,
                 transition,
                 emissions: Sequence[EmissionModel],
                 initial=None,
                 start_state: Optional[int] = None):
        """
        Initialize a HiddenMarkovModel from explicit parameters.

        Args:
            transition: Column-stochastic matrix [n_states, n_states] or a TransitionModel (copied)
            emissions: One emission model per state, index-aligned with the matrix (copied)
            initial: Optional explicit initial-state distribution [n_states]
            start_state: Optional state occupied at t = -1 (initial = matrix column)

        Raises:
            ConfigurationError: If the parameters are inconsistent
        """
        if isinstance(transition, TransitionModel):
            if initial is not None or start_state is not None:
                raise ConfigurationError(
                    "initial/start_state must be set on the TransitionModel itself"
                )
            self.transition = copy.deepcopy(transition)
        else:
            self.transition = TransitionModel(transition, initial=initial, start_state=start_state)

        emissions = list(emissions)
        self._check_emissions(emissions, self.transition.n_states)
        # Each state owns its emission; callers may pass one shared instance
        self.emission: List[EmissionModel] = [emission.copy() for emission in emissions]

        logger.debug(f"Initialized {self!r}")

    @staticmethod
    def _check_emissions(emissions: List[EmissionModel], n_states: int) -> None:
        if len(emissions) != n_states:
            raise ConfigurationError(
                f"got {len(emissions)} emission models for {n_states} states"
            )
        for index, emission in enumerate(emissions):
            if not isinstance(emission, EmissionModel):
                raise ConfigurationError(
                    f"emission {index} is not an EmissionModel: {type(emission).__name__}"
                )
            if type(emission) is not type(emissions[0]) or emission.shape != emissions[0].shape:
                raise ConfigurationError(
                    f"emission {index} ({emission!r}) doesn't match emission 0 ({emissions[0]!r})"
                )

    @classmethod
    def from_prototype(cls,
                       n_states: int,
                       prototype: EmissionModel,
                       rng: Optional[np.random.Generator] = None) -> 'HiddenMarkovModel':
        """
        Build a model with ``n_states`` copies of ``prototype``.

        Without ``rng`` the transition matrix is uniform and every state gets
        an identical copy of the prototype. Such a model is a symmetric fixed
        point of Baum-Welch; pass an ``rng`` to draw random transition columns
        and randomly perturbed emissions instead.

        Args:
            n_states: Number of hidden states (>= 1)
            prototype: Emission model copied for every state
            rng: Optional random generator used to break symmetry

        Returns:
            New HiddenMarkovModel with a uniform initial distribution
        """
        if n_states < 1:
            raise ConfigurationError(f"n_states must be >= 1, got {n_states}")

        if rng is None:
            matrix = np.full((n_states, n_states), 1.0 / n_states)
            emissions = [prototype.copy() for _ in range(n_states)]
        else:
            matrix = rng.random((n_states, n_states))
            matrix = matrix / matrix.sum(axis=0, keepdims=True)
            emissions = [prototype.perturbed(rng) for _ in range(n_states)]

        return cls(matrix, emissions)

    @property
    def n_states(self) -> int:
        return self.transition.n_states

    def validate_sequence(self, observations) -> np.ndarray:
        """
        Coerce an observation sequence to the model's canonical array form.

        Raises:
            DomainError: If the sequence is empty or outside the emission domain
        """
        return self.emission[0].validate(observations)

    def validate_states(self, states, length: int) -> np.ndarray:
        """
        Check a state sequence against the model and its observation length.

        Raises:
            DomainError: If lengths differ or indices are out of range
        """
        states = np.asarray(states)
        if states.ndim != 1 or states.size != length:
            raise DomainError(
                f"state sequence shape {states.shape} doesn't match observation length {length}"
            )
        if states.dtype.kind not in 'iu':
            raise DomainError("state sequence must contain integer state indices")
        if np.any(states < 0) or np.any(states >= self.n_states):
            raise DomainError(f"states must be in range [0, {self.n_states - 1}]")
        return states.astype(np.int64, copy=False)

    def emission_log_probabilities(self, observations: np.ndarray) -> np.ndarray:
        """
        Log emission probabilities for a validated sequence.

        Returns:
            Array [n_states, T]
        """
        return np.vstack([emission.log_probabilities(observations) for emission in self.emission])

    def emission_probabilities(self, observations: np.ndarray) -> np.ndarray:
        """Emission probabilities [n_states, T] for a validated sequence."""
        return np.exp(self.emission_log_probabilities(observations))

    def get_parameters(self) -> Tuple[np.ndarray, Optional[np.ndarray], List[EmissionModel]]:
        """
        Get current model parameters.

        Returns:
            Tuple of (transition matrix, explicit initial vector or None, emission copies)
        """
        return (
            np.array(self.transition.matrix),
            self.transition.initial,
            [emission.copy() for emission in self.emission]
        )

    def set_parameters(self, matrix, initial, emissions: Sequence[EmissionModel]) -> None:
        """
        Set model parameters and validate dimensions.

        Raises:
            ConfigurationError: If shapes or variants don't match the model
        """
        emissions = [emission.copy() for emission in emissions]
        self._check_emissions(emissions, self.n_states)
        if type(emissions[0]) is not type(self.emission[0]) or emissions[0].shape != self.emission[0].shape:
            raise ConfigurationError("emission variant or shape doesn't match the model")

        self.transition.update(matrix, initial)
        self.emission = emissions

        logger.debug("Model parameters updated and validated")

    def copy(self) -> 'HiddenMarkovModel':
        return copy.deepcopy(self)

    def decode(self, observations) -> np.ndarray:
        """Most likely state path (Viterbi)."""
        return decoder.decode(self, observations)

    def estimate(self, observations) -> estimator.Posterior:
        """Scaled forward-backward posteriors and log-likelihood."""
        return estimator.estimate(self, observations)

    def score(self, observations) -> float:
        """Log-likelihood of an observation sequence."""
        return scorer.score(self, observations)

    def generate(self,
                 length: int,
                 rng: np.random.Generator,
                 start_state: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Sample ``(observations, states)`` of the given length."""
        return sampler.generate(self, length, rng, start_state=start_state)

    def __repr__(self) -> str:
        return (f"HiddenMarkovModel(n_states={self.n_states}, "
                f"emission={self.emission[0]!r})")
