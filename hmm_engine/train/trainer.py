"""
HMMTrainer: supervised counting and Baum-Welch parameter estimation.

Both modes accumulate the same sufficient statistics (expected transition
counts and per-state observation weights) and share one M-step. In the
supervised mode the statistics are exact counts from the state labels; in
the unsupervised mode they are posterior expectations from forward-backward.
"""

import threading
import warnings
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

from ..config import get_config
from ..exceptions import ConvergenceWarning, DomainError, ModelTrainingError
from ..infer.estimator import estimate
from ..infer.scorer import score_batch
from ..logger import get_logger

logger = get_logger(__name__)


class TrainingStatus(str, Enum):
    CONVERGED = 'converged'
    ITERATION_CAPPED = 'iteration_capped'
    CANCELLED = 'cancelled'
    SUPERVISED = 'supervised'


@dataclass
class TrainingResult:
    """Completion status and statistics of one training call."""
    status: TrainingStatus
    iterations: int
    log_likelihood: Optional[float]
    log_likelihood_history: List[float] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status in (TrainingStatus.CONVERGED, TrainingStatus.SUPERVISED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'converged': self.converged,
            'iterations': self.iterations,
            'final_log_likelihood': self.log_likelihood,
            'log_likelihood_history': list(self.log_likelihood_history),
            'skipped_sequences': list(self.skipped)
        }


class _SufficientStatistics:
    """
    Partial accumulator for one worker. Merging is a commutative sum, so
    per-chunk accumulators can be reduced in any order before the M-step.
    """

    def __init__(self, n_states: int):
        self.n_states = n_states
        self.transition_counts = np.zeros((n_states, n_states))
        self.initial_counts = np.zeros(n_states)
        self.log_likelihood = 0.0
        self.observations: List[np.ndarray] = []
        self.weights: List[np.ndarray] = []
        self.failed: List[int] = []

    def add(self, observations: np.ndarray, gamma: np.ndarray,
            transition_counts: np.ndarray, log_likelihood: float = 0.0) -> None:
        self.transition_counts += transition_counts
        self.initial_counts += gamma[:, 0]
        self.log_likelihood += log_likelihood
        self.observations.append(observations)
        self.weights.append(gamma)

    def merge(self, other: '_SufficientStatistics') -> '_SufficientStatistics':
        self.transition_counts += other.transition_counts
        self.initial_counts += other.initial_counts
        self.log_likelihood += other.log_likelihood
        self.observations.extend(other.observations)
        self.weights.extend(other.weights)
        self.failed.extend(other.failed)
        return self

    def state_data(self, state: int) -> Tuple[np.ndarray, np.ndarray]:
        """Pooled observations and their weights for one state."""
        observations = np.concatenate(self.observations, axis=0)
        weights = np.concatenate([gamma[state] for gamma in self.weights])
        return observations, weights


def _expectation_chunk(model, chunk: Sequence[Tuple[int, np.ndarray]]) -> _SufficientStatistics:
    """E-step over a chunk of (index, observations) pairs."""
    stats = _SufficientStatistics(model.n_states)
    for index, observations in chunk:
        try:
            posterior = estimate(model, observations)
        except DomainError as e:
            logger.warning(f"Sequence {index} is impossible under the current model: {e}")
            stats.failed.append(index)
            continue
        stats.add(observations, posterior.gamma, posterior.transition_counts,
                  posterior.log_likelihood)
    return stats


def _label_statistics(n_states: int, observations: np.ndarray,
                      states: np.ndarray) -> _SufficientStatistics:
    """Exact counts from a labelled sequence."""
    stats = _SufficientStatistics(n_states)
    gamma = np.zeros((n_states, states.size))
    gamma[states, np.arange(states.size)] = 1.0

    transition_counts = np.zeros((n_states, n_states))
    np.add.at(transition_counts, (states[1:], states[:-1]), 1.0)

    stats.add(observations, gamma, transition_counts)
    return stats


class HMMTrainer:
    """
    Parameter estimation for a HiddenMarkovModel.

    The trainer mutates the model it is given and needs exclusive access to
    it for the duration of a call: no decoding, scoring or sampling on the
    same model instance may run concurrently with training.
    """

    def __init__(self,
                 max_iterations: Optional[int] = None,
                 convergence_tolerance: Optional[float] = None,
                 n_jobs: Optional[int] = None):
        """
        Initialize HMMTrainer.

        Args:
            max_iterations: Maximum Baum-Welch iterations (default: config)
            convergence_tolerance: Stop when the batch log-likelihood improves
                by less than this (default: config)
            n_jobs: Parallel workers for the E-step, joblib semantics (default: config)
        """
        if max_iterations is None:
            max_iterations = get_config('training', 'max_iterations')
        if convergence_tolerance is None:
            convergence_tolerance = get_config('training', 'convergence_tolerance')
        if n_jobs is None:
            n_jobs = get_config('training', 'n_jobs')

        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        if convergence_tolerance < 0:
            raise ValueError(f"convergence_tolerance must be >= 0, got {convergence_tolerance}")

        self.max_iterations = max_iterations
        self.convergence_tolerance = convergence_tolerance
        self.n_jobs = n_jobs

        logger.debug(f"HMMTrainer initialized: max_iterations={max_iterations}, "
                     f"tolerance={convergence_tolerance}, n_jobs={n_jobs}")

    def train(self,
              model,
              observation_sequences: Sequence,
              state_sequences: Optional[Sequence] = None,
              cancel_event: Optional[threading.Event] = None) -> TrainingResult:
        """
        Train with labels if ``state_sequences`` is given, otherwise with Baum-Welch.
        """
        if state_sequences is not None:
            return self.train_supervised(model, observation_sequences, state_sequences)
        return self.train_unsupervised(model, observation_sequences, cancel_event=cancel_event)

    def train_supervised(self,
                         model,
                         observation_sequences: Sequence,
                         state_sequences: Sequence) -> TrainingResult:
        """
        Estimate parameters directly from labelled sequences (no EM).

        Transition probabilities are the normalised counts of consecutive
        state pairs per source state; every emission model is re-estimated
        from the observations labelled with its state, weight 1 each.

        Args:
            model: HiddenMarkovModel, updated in place
            observation_sequences: Batch of observation sequences
            state_sequences: Batch of state sequences paired with the observations

        Returns:
            TrainingResult with status SUPERVISED

        Raises:
            ModelTrainingError: If the batch is unpaired or has no valid sequence
        """
        if len(observation_sequences) != len(state_sequences):
            raise ModelTrainingError(
                f"got {len(observation_sequences)} observation sequences and "
                f"{len(state_sequences)} state sequences"
            )

        skipped = []
        stats = _SufficientStatistics(model.n_states)
        for index, (observations, states) in enumerate(zip(observation_sequences, state_sequences)):
            try:
                observations = model.validate_sequence(observations)
                states = model.validate_states(states, len(observations))
            except DomainError as e:
                logger.warning(f"Skipping sequence {index}: {e}")
                skipped.append(index)
                continue
            stats.merge(_label_statistics(model.n_states, observations, states))

        if not stats.observations:
            raise ModelTrainingError("no valid labelled sequences in training batch")

        logger.info(f"Supervised training on {len(stats.observations)} sequences "
                    f"({len(skipped)} skipped)")

        self._maximize(model, stats)

        return TrainingResult(
            status=TrainingStatus.SUPERVISED,
            iterations=1,
            log_likelihood=None,
            skipped=skipped
        )

    def train_unsupervised(self,
                           model,
                           observation_sequences: Sequence,
                           cancel_event: Optional[threading.Event] = None) -> TrainingResult:
        """
        Fit the model with Baum-Welch starting from its current parameters.

        The model is the seed: it must not be perfectly symmetric across
        states, or EM stays at the symmetric fixed point.

        Args:
            model: HiddenMarkovModel, updated in place
            observation_sequences: Batch of observation sequences
            cancel_event: Optional event; when set, training stops and the
                best parameters seen so far are restored

        Returns:
            TrainingResult; status CONVERGED, ITERATION_CAPPED or CANCELLED

        Raises:
            ModelTrainingError: If the batch has no usable sequence
        """
        sequences, skipped = self._validate_batch(model, observation_sequences)

        logger.info(f"Starting Baum-Welch training with {len(sequences)} sequences "
                    f"({len(skipped)} skipped)")

        history: List[float] = []
        best_log_likelihood = -np.inf
        best_parameters = None
        previous = None
        status = TrainingStatus.ITERATION_CAPPED

        for iteration in range(self.max_iterations):
            if cancel_event is not None and cancel_event.is_set():
                status = TrainingStatus.CANCELLED
                break

            stats = self._expectation(model, sequences)

            if stats.failed:
                if iteration > 0:
                    raise ModelTrainingError(
                        f"sequences {sorted(stats.failed)} became impossible during training"
                    )
                failed = set(stats.failed)
                skipped.extend(index for index, _ in sequences if index in failed)
                sequences = [(index, obs) for index, obs in sequences if index not in failed]
                if not sequences:
                    raise ModelTrainingError("every sequence is impossible under the seed model")

            log_likelihood = stats.log_likelihood
            history.append(log_likelihood)

            if log_likelihood > best_log_likelihood:
                best_log_likelihood = log_likelihood
                best_parameters = model.get_parameters()

            if previous is not None:
                improvement = log_likelihood - previous
                logger.debug(f"Iteration {iteration + 1}: log_likelihood={log_likelihood:.6f}, "
                             f"improvement={improvement:.6f}")

                # EM never decreases the likelihood beyond rounding
                if improvement < -1e-6 * max(1.0, abs(previous)):
                    logger.warning(f"Log-likelihood decreased by {-improvement:.6f} "
                                   f"at iteration {iteration + 1}")

                if improvement < self.convergence_tolerance:
                    status = TrainingStatus.CONVERGED
                    break
            else:
                logger.debug(f"Initial log-likelihood: {log_likelihood:.6f}")

            self._maximize(model, stats)
            previous = log_likelihood

        if status is TrainingStatus.CANCELLED:
            final = None
            if best_parameters is not None:
                model.set_parameters(*best_parameters)
                final = best_log_likelihood
                logger.info(f"Training cancelled after {len(history)} iterations; "
                            f"restored parameters with log-likelihood {best_log_likelihood:.6f}")
            else:
                logger.info("Training cancelled before the first iteration; model unchanged")
        elif status is TrainingStatus.ITERATION_CAPPED:
            message = (f"Baum-Welch did not converge within {self.max_iterations} iterations "
                       f"(tolerance {self.convergence_tolerance})")
            logger.warning(message)
            warnings.warn(message, ConvergenceWarning, stacklevel=2)
            # The last M-step ran after the last recorded E-step
            final = self._final_log_likelihood(model, sequences)
        else:
            final = history[-1]
            logger.info(f"Converged after {len(history)} iterations: "
                        f"log_likelihood={final:.6f}")

        return TrainingResult(
            status=status,
            iterations=len(history),
            log_likelihood=final,
            log_likelihood_history=history,
            skipped=sorted(skipped)
        )

    def _validate_batch(self, model, observation_sequences: Sequence) -> Tuple[List[Tuple[int, np.ndarray]], List[int]]:
        if len(observation_sequences) == 0:
            raise ModelTrainingError("observation_sequences cannot be empty")

        sequences = []
        skipped = []
        for index, observations in enumerate(observation_sequences):
            try:
                sequences.append((index, model.validate_sequence(observations)))
            except DomainError as e:
                logger.warning(f"Skipping sequence {index}: {e}")
                skipped.append(index)

        if not sequences:
            raise ModelTrainingError("no valid sequences in training batch")

        return sequences, skipped

    def _expectation(self, model, sequences: List[Tuple[int, np.ndarray]]) -> _SufficientStatistics:
        """E-step: per-chunk accumulators, merged after all workers finish."""
        n_chunks = max(1, min(effective_n_jobs(self.n_jobs), len(sequences)))
        chunks = [
            [sequences[i] for i in indices]
            for indices in np.array_split(np.arange(len(sequences)), n_chunks)
        ]

        partials = Parallel(n_jobs=self.n_jobs, prefer='threads')(
            delayed(_expectation_chunk)(model, chunk) for chunk in chunks
        )
        return reduce(lambda a, b: a.merge(b), partials)

    def _final_log_likelihood(self, model, sequences: List[Tuple[int, np.ndarray]]) -> float:
        try:
            return score_batch(model, [observations for _, observations in sequences])
        except DomainError as e:
            raise ModelTrainingError(f"a training sequence became impossible during training: {e}")

    def _maximize(self, model, stats: _SufficientStatistics) -> None:
        """
        M-step: normalise transition counts and re-estimate emissions.

        Every new parameter is computed before any is committed, so a failed
        re-estimate (e.g. a singular covariance) leaves the model unchanged.
        """
        matrix = np.array(model.transition.matrix)
        counts = stats.transition_counts
        totals = counts.sum(axis=0)

        for source in range(model.n_states):
            if totals[source] > 0:
                matrix[:, source] = counts[:, source] / totals[source]
            else:
                logger.warning(f"No transitions out of state {source}; keeping previous column")

        initial = None
        if model.transition.initial is not None and stats.initial_counts.sum() > 0:
            initial = stats.initial_counts / stats.initial_counts.sum()

        emissions = []
        for state, emission in enumerate(model.emission):
            emission = emission.copy()
            observations, weights = stats.state_data(state)
            if weights.sum() <= 0:
                logger.warning(f"State {state} has no observations; keeping previous emission")
            else:
                emission.reestimate(observations, weights)
            emissions.append(emission)

        model.set_parameters(matrix, initial, emissions)
