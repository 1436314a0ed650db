"""
Inference module.

Read-only algorithms over a HiddenMarkovModel: Viterbi decoding,
forward-backward estimation, likelihood scoring and sampling.
"""

from .decoder import decode, decode_with_score
from .estimator import Posterior, estimate
from .scorer import score, score_batch
from .sampler import generate

__all__ = [
    "decode",
    "decode_with_score",
    "Posterior",
    "estimate",
    "score",
    "score_batch",
    "generate"
]
