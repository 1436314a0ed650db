"""
Scaled forward-backward estimation.

The forward variables are normalised to sum to one at every timestep and the
backward variables are divided by the same normalisers, which keeps both
inside floating-point range for arbitrarily long sequences. The sequence
log-likelihood is recovered as the sum of the log normalisers.

Emission probabilities are additionally shifted by their per-timestep
maximum in log space before exponentiation, so Gaussian densities that
would underflow to zero for every state (outlying observations) still
yield a finite likelihood. The shift cancels out of the posteriors and is
added back into ``log_scales``.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..exceptions import DomainError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class Posterior:
    """
    Result of one forward-backward pass. Owned by the caller; the model
    keeps no reference to it.

    Attributes:
        log_likelihood: log P(observations | model)
        gamma: Posterior state occupancy [n_states, T], columns sum to 1
        forward: Scaled forward probabilities [n_states, T], columns sum to 1
        backward: Scaled backward probabilities [n_states, T]
        log_scales: Log of the forward normaliser at each timestep [T]
        transition_counts: Expected transitions summed over time,
            [destination, source] like the transition matrix
    """
    log_likelihood: float
    gamma: np.ndarray
    forward: np.ndarray
    backward: np.ndarray
    log_scales: np.ndarray
    transition_counts: np.ndarray

    @property
    def scales(self) -> np.ndarray:
        """Forward normalisers sum_s alpha[s, t] before scaling."""
        return np.exp(self.log_scales)


def _shifted_emissions(model, observations: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Emission probabilities divided by their per-timestep maximum.

    Returns:
        Tuple of (shifted probabilities [n_states, T], log offsets [T])

    Raises:
        DomainError: If some observation has zero probability in every state
    """
    log_emissions = model.emission_log_probabilities(observations)
    offsets = log_emissions.max(axis=0)

    impossible = np.flatnonzero(~np.isfinite(offsets))
    if impossible.size:
        raise DomainError(
            f"observation at time {impossible[0]} has zero probability in every state"
        )

    return np.exp(log_emissions - offsets), offsets


def forward(model, observations: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Scaled forward pass over a validated observation sequence.

    Args:
        model: HiddenMarkovModel
        observations: Sequence already passed through ``model.validate_sequence``

    Returns:
        Tuple of:
        - alpha: Scaled forward probabilities [n_states, T]
        - scales: Normalisers of the shifted recursion [T]
        - emissions: Shifted emission probabilities [n_states, T]
        - offsets: Log shift applied to each timestep [T]

    Raises:
        DomainError: If the forward probabilities vanish at some timestep
    """
    emissions, offsets = _shifted_emissions(model, observations)
    matrix = model.transition.matrix
    n_states, T = emissions.shape

    alpha = np.zeros((n_states, T))
    scales = np.zeros(T)

    alpha[:, 0] = model.transition.initial_probabilities * emissions[:, 0]
    for t in range(T):
        if t > 0:
            alpha[:, t] = emissions[:, t] * (matrix @ alpha[:, t - 1])

        scales[t] = alpha[:, t].sum()
        if scales[t] == 0:
            raise DomainError(f"forward probabilities sum to zero at time {t}")

        alpha[:, t] /= scales[t]

    return alpha, scales, emissions, offsets


def log_likelihood_from_scales(scales: np.ndarray, offsets: np.ndarray) -> float:
    return float(np.sum(np.log(scales)) + np.sum(offsets))


def estimate(model, observations) -> Posterior:
    """
    Run the scaled forward-backward algorithm.

    Args:
        model: HiddenMarkovModel (read only)
        observations: Observation sequence of length T >= 1

    Returns:
        Posterior with gamma, forward/backward matrices, scales,
        expected transition counts and the log-likelihood

    Raises:
        DomainError: If the sequence is invalid or impossible under the model
    """
    observations = model.validate_sequence(observations)
    alpha, scales, emissions, offsets = forward(model, observations)

    matrix = model.transition.matrix
    n_states, T = alpha.shape

    beta = np.zeros((n_states, T))
    beta[:, T - 1] = 1.0
    for t in range(T - 2, -1, -1):
        beta[:, t] = matrix.T @ (emissions[:, t + 1] * beta[:, t + 1]) / scales[t + 1]

    gamma = alpha * beta
    # Guard against residual scaling drift
    gamma /= gamma.sum(axis=0, keepdims=True)

    transition_counts = np.zeros((n_states, n_states))
    if T > 1:
        weighted = emissions[:, 1:] * beta[:, 1:] / scales[1:]
        predicted = matrix @ alpha[:, :-1]
        # xi_t normaliser; equals 1 up to rounding
        norms = (weighted * predicted).sum(axis=0)
        transition_counts = ((weighted / norms) @ alpha[:, :-1].T) * matrix

    log_likelihood = log_likelihood_from_scales(scales, offsets)
    logger.debug(f"Forward-backward completed: T={T}, log_likelihood={log_likelihood:.6f}")

    return Posterior(
        log_likelihood=log_likelihood,
        gamma=gamma,
        forward=alpha,
        backward=beta,
        log_scales=np.log(scales) + offsets,
        transition_counts=transition_counts
    )
