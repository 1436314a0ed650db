"""
Synthetic sequence generation.
"""

from typing import Optional, Tuple

import numpy as np

from ..emission.base import draw_index
from ..exceptions import DomainError


def generate(model,
             length: int,
             rng: np.random.Generator,
             start_state: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample an observation sequence together with its hidden states.

    Args:
        model: HiddenMarkovModel (read only)
        length: Number of steps L >= 1
        rng: Caller-owned random generator; equal seeds give equal sequences
        start_state: First state; drawn from the initial distribution if None

    Returns:
        Tuple of (observations, states), both of length L. Discrete
        observations are an int array [L], Gaussian ones a float array [L, d].

    Raises:
        DomainError: If length or start_state is out of range
    """
    if not isinstance(rng, np.random.Generator):
        raise TypeError(f"rng must be a numpy.random.Generator, got {type(rng).__name__}")
    if length < 1:
        raise DomainError(f"length must be >= 1, got {length}")

    matrix = model.transition.matrix

    if start_state is None:
        current = draw_index(model.transition.initial_probabilities, rng)
    elif 0 <= start_state < model.n_states:
        current = int(start_state)
    else:
        raise DomainError(f"start_state must be in range [0, {model.n_states - 1}]")

    states = np.empty(length, dtype=np.int64)
    observations = []

    for t in range(length):
        states[t] = current
        observations.append(model.emission[current].random(rng))
        if t + 1 < length:
            current = draw_index(matrix[:, current], rng)

    return np.array(observations), states
