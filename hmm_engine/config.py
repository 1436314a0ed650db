"""
Configuration management for the HMM engine.

Library-wide defaults live in ``DEFAULT_CONFIG``; constructor arguments
always take precedence over them. Known keys are type- and range-checked
when set, so a bad tolerance fails here rather than deep inside training.

Configuration lives in memory only; the library reads no config files or
environment variables.
"""

import copy
import logging
from typing import Any, Callable, Dict, Optional

from .exceptions import ConfigurationError


DEFAULT_CONFIG = {
    'numerics': {
        # Allowed deviation of probability vectors / matrix columns from 1
        'stochastic_tolerance': 1e-6,
        # Relative eigenvalue floor below which a covariance is singular
        'singular_tolerance': 1e-10
    },
    'training': {
        'max_iterations': 1000,
        'convergence_tolerance': 1e-5,
        'n_jobs': 1
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file_logging': False,
        'log_file': 'hmm_engine.log'
    }
}


def _non_negative_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _job_count(value) -> bool:
    # joblib semantics: positive counts, or negative counts relative to the CPU count
    return isinstance(value, int) and not isinstance(value, bool) and value != 0


def _level_name(value) -> bool:
    return isinstance(value, str) and isinstance(logging.getLevelName(value.upper()), int)


_VALIDATORS: Dict[tuple, Callable[[Any], bool]] = {
    ('numerics', 'stochastic_tolerance'): _non_negative_number,
    ('numerics', 'singular_tolerance'): _non_negative_number,
    ('training', 'max_iterations'): _positive_int,
    ('training', 'convergence_tolerance'): _non_negative_number,
    ('training', 'n_jobs'): _job_count,
    ('logging', 'level'): _level_name,
    ('logging', 'file_logging'): lambda value: isinstance(value, bool),
}


class ConfigManager:
    """Holds the active configuration and validates changes to it."""

    def __init__(self):
        self._config = copy.deepcopy(DEFAULT_CONFIG)

    @staticmethod
    def _check(section: str, key: str, value: Any) -> None:
        validator = _VALIDATORS.get((section, key))
        if validator is not None and not validator(value):
            raise ConfigurationError(f"invalid value for {section}.{key}: {value!r}")

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get one value, or a copy of a whole section when ``key`` is None."""
        values = self._config.get(section, {})
        if key is None:
            return copy.deepcopy(values)
        return values.get(key)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a single value after validation."""
        self._check(section, key, value)
        self._config.setdefault(section, {})[key] = value

    def update(self, config_dict: Dict[str, Any]) -> None:
        """
        Merge a nested dictionary into the configuration.

        Every value is validated before any is applied, so a rejected
        update leaves the configuration unchanged.

        Raises:
            ConfigurationError: If a section isn't a dictionary or a value is invalid
        """
        for section, values in config_dict.items():
            if not isinstance(values, dict):
                raise ConfigurationError(f"config section {section!r} must be a dictionary")
            for key, value in values.items():
                self._check(section, key, value)

        for section, values in config_dict.items():
            self._config.setdefault(section, {}).update(values)

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def reset_to_defaults(self) -> None:
        self._config = copy.deepcopy(DEFAULT_CONFIG)


_config_manager = ConfigManager()


def get_config(section: str, key: Optional[str] = None) -> Any:
    """Get configuration value(s) from the global config manager."""
    return _config_manager.get(section, key)


def set_config(section: str, key: str, value: Any) -> None:
    """Set a configuration value in the global config manager."""
    _config_manager.set(section, key, value)


def update_config(config_dict: Dict[str, Any]) -> None:
    _config_manager.update(config_dict)


def get_all_config() -> Dict[str, Any]:
    return _config_manager.get_all()


def reset_config() -> None:
    """Restore the library defaults."""
    _config_manager.reset_to_defaults()
