"""
Exception hierarchy for the HMM engine.
"""


class HMMEngineError(Exception):
    """Base exception for the HMM engine."""
    pass


class ConfigurationError(HMMEngineError):
    """Invalid model parameters detected at construction time."""
    pass


class DomainError(HMMEngineError):
    """Observation, state or parameter outside the domain of the model."""
    pass


class ModelTrainingError(HMMEngineError):
    """Training batch cannot be used at all."""
    pass


class PersistenceError(HMMEngineError):
    """Model serialization or deserialization failures."""
    pass


class ConvergenceWarning(UserWarning):
    """EM training stopped at the iteration cap before converging."""
    pass
