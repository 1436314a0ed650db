"""
Logging for the HMM engine.

Every module logs through a child of the ``hmm_engine`` logger. The package
logger is configured once from the ``logging`` config section: a console
handler always, a file handler when ``file_logging`` is enabled. EM
progress is logged at DEBUG, training summaries at INFO, skipped sequences
and states without evidence at WARNING.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .config import get_config

ROOT_LOGGER_NAME = 'hmm_engine'


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper())


class HMMEngineLogger:
    """Owns the handlers of the ``hmm_engine`` logger."""

    def __init__(self):
        self._console_handler: Optional[logging.Handler] = None
        self._file_handler: Optional[logging.FileHandler] = None
        self.configure()

    @property
    def root(self) -> logging.Logger:
        return logging.getLogger(ROOT_LOGGER_NAME)

    def _attach(self, handler: logging.Handler) -> None:
        handler.setLevel(self.root.level)
        handler.setFormatter(logging.Formatter(get_config('logging', 'format')))
        self.root.addHandler(handler)

    def configure(self) -> None:
        """(Re)build the package handlers from the current logging config."""
        self.root.setLevel(_level(get_config('logging', 'level') or 'INFO'))

        # Handlers added by other code (e.g. test harnesses) are left alone
        for handler in (self._console_handler, self._file_handler):
            if handler is not None:
                self.root.removeHandler(handler)
                handler.close()
        self._file_handler = None

        self._console_handler = logging.StreamHandler(sys.stdout)
        self._attach(self._console_handler)
        if get_config('logging', 'file_logging'):
            self.enable_file_logging()

        self.root.propagate = False

    def get_logger(self, name: str) -> logging.Logger:
        """Child logger of ``hmm_engine``; module ``__name__`` values pass through."""
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + '.'):
            name = f'{ROOT_LOGGER_NAME}.{name}'
        return logging.getLogger(name)

    def set_level(self, level: Union[str, int]) -> None:
        level = _level(level)
        self.root.setLevel(level)
        for handler in (self._console_handler, self._file_handler):
            if handler is not None:
                handler.setLevel(level)

    def enable_file_logging(self, log_file: Optional[str] = None) -> None:
        """Add this manager's file handler unless it is already attached."""
        if self._file_handler is not None:
            return

        log_path = Path(log_file or get_config('logging', 'log_file') or 'hmm_engine.log')
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handler = logging.FileHandler(log_path)
        self._attach(self._file_handler)

    def disable_file_logging(self) -> None:
        """Remove the file handler added by ``enable_file_logging``; other handlers stay."""
        if self._file_handler is None:
            return
        self.root.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None


_logger_manager = HMMEngineLogger()


def get_logger(name: str = 'main') -> logging.Logger:
    """Get a logger for the specified module or component."""
    return _logger_manager.get_logger(name)


def configure_logging() -> None:
    """Apply the current ``logging`` config section to the package logger."""
    _logger_manager.configure()


def set_log_level(level: Union[str, int]) -> None:
    _logger_manager.set_level(level)


def enable_file_logging(log_file: Optional[str] = None) -> None:
    _logger_manager.enable_file_logging(log_file)


def disable_file_logging() -> None:
    _logger_manager.disable_file_logging()
