"""
Emission model module.

Per-state observation distributions: categorical and multivariate Gaussian.
"""

from .base import EmissionModel
from .discrete import DiscreteEmission
from .gaussian import GaussianEmission

__all__ = [
    "EmissionModel",
    "DiscreteEmission",
    "GaussianEmission"
]
