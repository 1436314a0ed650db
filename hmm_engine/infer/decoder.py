"""
Viterbi decoding of the most likely hidden-state path.
"""

from typing import Tuple

import numpy as np

from ..exceptions import DomainError
from ..logger import get_logger

logger = get_logger(__name__)


def decode_with_score(model, observations) -> Tuple[np.ndarray, float]:
    """
    Find the maximum a posteriori state path in log space.

    Ties are broken towards the lowest state index, both when choosing a
    predecessor and when choosing the final state, so the result is
    deterministic.

    Args:
        model: HiddenMarkovModel (read only)
        observations: Observation sequence of length T >= 1

    Returns:
        Tuple of (state path [T], joint log probability of path and observations)

    Raises:
        DomainError: If every state scores -inf at some timestep
    """
    observations = model.validate_sequence(observations)
    log_emissions = model.emission_log_probabilities(observations)

    with np.errstate(divide='ignore'):
        log_matrix = np.log(model.transition.matrix)
        log_initial = np.log(model.transition.initial_probabilities)

    n_states, T = log_emissions.shape
    scores = np.empty((n_states, T))
    backpointers = np.zeros((n_states, T), dtype=np.int64)
    rows = np.arange(n_states)

    scores[:, 0] = log_initial + log_emissions[:, 0]
    _check_reachable(scores[:, 0], 0)

    for t in range(1, T):
        # candidates[destination, source]
        candidates = log_matrix + scores[:, t - 1][np.newaxis, :]
        best = np.argmax(candidates, axis=1)
        backpointers[:, t] = best
        scores[:, t] = candidates[rows, best] + log_emissions[:, t]
        _check_reachable(scores[:, t], t)

    path = np.empty(T, dtype=np.int64)
    path[T - 1] = np.argmax(scores[:, T - 1])
    for t in range(T - 1, 0, -1):
        path[t - 1] = backpointers[path[t], t]

    log_probability = float(scores[path[T - 1], T - 1])
    logger.debug(f"Viterbi completed: T={T}, log_probability={log_probability:.6f}")

    return path, log_probability


def _check_reachable(column: np.ndarray, t: int) -> None:
    if np.all(np.isneginf(column)):
        raise DomainError(f"observation at time {t} is impossible under the model")


def decode(model, observations) -> np.ndarray:
    """Most likely state path for an observation sequence."""
    path, _ = decode_with_score(model, observations)
    return path
