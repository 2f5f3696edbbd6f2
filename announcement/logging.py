from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, cast


class LoggingConfig(ABC):
    """
    An abstract base class for the logging configuration used by Announcement.

    Subclasses decide how the logging system is configured (`configure`) and
    which logger instance the package writes to (`get_logger`).
    """

    __logging_levels__: list[str] = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

    def __init__(self, level: str = "DEBUG", **kwargs: Any) -> None:
        """
        Args:
            level: The logging level name. Case insensitive.

        Raises:
            AssertionError: If `level` is not one of the known level names.
        """
        levels: str = ", ".join(self.__logging_levels__)
        assert (
            level.upper() in self.__logging_levels__
        ), f"'{level}' is not a valid logging level. Available levels: '{levels}'."

        self.level = level.upper()
        self.options = kwargs

    @abstractmethod
    def configure(self) -> None:
        """
        Configures the logging system.
        """
        raise NotImplementedError("`configure()` must be implemented in subclasses.")

    @abstractmethod
    def get_logger(self) -> Any:
        """
        Returns the logger instance the package should write to.
        """
        raise NotImplementedError("`get_logger()` must be implemented in subclasses.")


class LoggerProxy:
    """
    A proxy around the real logger so modules can import `logger` at import
    time while the concrete logger is bound later by `setup_logging`.

    Until something is bound, attribute access falls back to the standard
    `announcement` logger without configuring anything.
    """

    def __init__(self) -> None:
        self._logger: logging.Logger | None = None
        self._lock: threading.RLock = threading.RLock()

    def bind_logger(self, logger: Any) -> None:
        with self._lock:
            self._logger = logger

    def __getattr__(self, item: str) -> Any:
        with self._lock:
            if self._logger is None:
                return getattr(logging.getLogger("announcement"), item)
            return getattr(self._logger, item)


logger: logging.Logger = cast(logging.Logger, LoggerProxy())


def setup_logging(logging_config: LoggingConfig | None = None) -> None:
    """
    Sets up the logging system for the package.

    When no configuration is given, the one built from the active settings is
    used. The configured logger is bound to the global `logger` proxy.

    Args:
        logging_config: An optional `LoggingConfig` instance.

    Raises:
        ValueError: If `logging_config` is not a `LoggingConfig`.
    """
    from announcement.conf import settings

    if logging_config is not None and not isinstance(logging_config, LoggingConfig):
        raise ValueError("`logging_config` must be an instance of LoggingConfig.")

    config = logging_config or settings.logging_config
    if config is None:
        return

    config.configure()
    cast(LoggerProxy, logger).bind_logger(config.get_logger())
