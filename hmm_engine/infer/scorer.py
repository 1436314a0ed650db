"""
Sequence log-likelihood via the scaled forward pass alone.
"""

from typing import Iterable

from .estimator import forward, log_likelihood_from_scales


def score(model, observations) -> float:
    """
    Compute log P(observations | model) without the backward pass.

    Args:
        model: HiddenMarkovModel (read only)
        observations: Observation sequence of length T >= 1

    Returns:
        Log-likelihood of the sequence

    Raises:
        DomainError: If the sequence is invalid or impossible under the model
    """
    observations = model.validate_sequence(observations)
    _, scales, _, offsets = forward(model, observations)
    return log_likelihood_from_scales(scales, offsets)


def score_batch(model, sequences: Iterable) -> float:
    """Total log-likelihood across observation sequences."""
    return sum(score(model, observations) for observations in sequences)
