"""
Training module.

Supervised and Baum-Welch parameter estimation, plus model persistence.
"""

from .trainer import HMMTrainer, TrainingResult, TrainingStatus
from .persistence import ModelPersistence

__all__ = [
    "HMMTrainer",
    "TrainingResult",
    "TrainingStatus",
    "ModelPersistence"
]
