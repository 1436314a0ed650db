"""
Hidden Markov Model module.

Model container and transition model.
"""

from .transition import TransitionModel
from .model import HiddenMarkovModel

__all__ = [
    "TransitionModel",
    "HiddenMarkovModel"
]
