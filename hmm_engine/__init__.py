"""
hmm_engine: generic Hidden Markov Model engine.

Viterbi decoding, scaled forward-backward estimation, likelihood scoring,
sampling and Baum-Welch / supervised training over discrete-state HMMs with
categorical or multivariate Gaussian emissions.
"""

__version__ = "0.1.0"

from .config import get_config, set_config
from .logger import get_logger
from .exceptions import (
    HMMEngineError,
    ConfigurationError,
    DomainError,
    ModelTrainingError,
    PersistenceError,
    ConvergenceWarning
)
from .emission import EmissionModel, DiscreteEmission, GaussianEmission
from .hmm import TransitionModel, HiddenMarkovModel
from .infer import Posterior, decode, decode_with_score, estimate, score, score_batch, generate
from .train import HMMTrainer, TrainingResult, TrainingStatus, ModelPersistence

__all__ = [
    "get_config",
    "set_config",
    "get_logger",
    "HMMEngineError",
    "ConfigurationError",
    "DomainError",
    "ModelTrainingError",
    "PersistenceError",
    "ConvergenceWarning",
    "EmissionModel",
    "DiscreteEmission",
    "GaussianEmission",
    "TransitionModel",
    "HiddenMarkovModel",
    "Posterior",
    "decode",
    "decode_with_score",
    "estimate",
    "score",
    "score_batch",
    "generate",
    "HMMTrainer",
    "TrainingResult",
    "TrainingStatus",
    "ModelPersistence",
    "__version__"
]
