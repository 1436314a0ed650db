"""
Transition model: column-stochastic matrix plus initial-state distribution.

``matrix[destination, source]`` is the probability of moving from ``source``
to ``destination``, so every column sums to 1.
"""

from typing import Optional

import numpy as np

from ..config import get_config
from ..exceptions import ConfigurationError


class TransitionModel:
    """
    State transition probabilities of a hidden Markov model.

    The initial-state distribution is resolved in this order:

    1. an explicit ``initial`` vector,
    2. ``start_state``: the chain occupies that state at t = -1, so the
       initial distribution is ``matrix[:, start_state]``,
    3. uniform over all states.
    """

    def __init__(self, matrix, initial=None, start_state: Optional[int] = None):
        matrix = np.array(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.shape[0] == 0:
            raise ConfigurationError(f"transition matrix must be square and non-empty, got shape {matrix.shape}")

        self._matrix = self._check_matrix(matrix)
        n_states = matrix.shape[0]

        if initial is not None and start_state is not None:
            raise ConfigurationError("pass either initial or start_state, not both")
        if start_state is not None and not 0 <= start_state < n_states:
            raise ConfigurationError(f"start_state must be in range [0, {n_states - 1}]")

        self._start_state = None if start_state is None else int(start_state)
        self._initial = None if initial is None else self._check_initial(initial)

    @staticmethod
    def _check_matrix(matrix: np.ndarray) -> np.ndarray:
        tolerance = get_config('numerics', 'stochastic_tolerance')

        if not np.all(np.isfinite(matrix)):
            raise ConfigurationError("transition matrix contains non-finite values")
        if np.any(matrix < 0):
            raise ConfigurationError("transition matrix contains negative values")

        column_sums = matrix.sum(axis=0)
        if not np.allclose(column_sums, 1.0, rtol=0, atol=tolerance):
            raise ConfigurationError(f"transition matrix columns don't sum to 1.0: {column_sums}")

        return matrix

    def _check_initial(self, initial) -> np.ndarray:
        tolerance = get_config('numerics', 'stochastic_tolerance')
        initial = np.array(initial, dtype=float)

        if initial.shape != (self.n_states,):
            raise ConfigurationError(f"initial shape {initial.shape} doesn't match expected ({self.n_states},)")
        if np.any(initial < 0) or not np.all(np.isfinite(initial)):
            raise ConfigurationError("initial probabilities must be finite and non-negative")
        if abs(initial.sum() - 1.0) > tolerance:
            raise ConfigurationError(f"initial probabilities sum to {initial.sum()}, expected 1.0")

        return initial

    @property
    def n_states(self) -> int:
        return self._matrix.shape[0]

    @property
    def matrix(self) -> np.ndarray:
        """Read-only view of the transition matrix."""
        view = self._matrix.view()
        view.flags.writeable = False
        return view

    @property
    def initial(self) -> Optional[np.ndarray]:
        """Explicit initial vector, or None when it is derived."""
        return None if self._initial is None else self._initial.copy()

    @property
    def start_state(self) -> Optional[int]:
        return self._start_state

    @property
    def initial_probabilities(self) -> np.ndarray:
        """Resolved initial-state distribution."""
        if self._initial is not None:
            return self._initial.copy()
        if self._start_state is not None:
            return self._matrix[:, self._start_state].copy()
        return np.full(self.n_states, 1.0 / self.n_states)

    def update(self, matrix, initial=None) -> None:
        """
        Replace the matrix (and the explicit initial vector, if given).

        Raises:
            ConfigurationError: If the shape changes or the values are invalid
        """
        matrix = np.array(matrix, dtype=float)
        if matrix.shape != self._matrix.shape:
            raise ConfigurationError(
                f"transition shape {matrix.shape} doesn't match expected {self._matrix.shape}"
            )
        matrix = self._check_matrix(matrix)
        if initial is not None:
            self._initial = self._check_initial(initial)
        self._matrix = matrix

    def __repr__(self) -> str:
        return f"TransitionModel(n_states={self.n_states})"
