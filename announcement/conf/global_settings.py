from __future__ import annotations  # Enable postponed evaluation of type hints

from typing import TYPE_CHECKING, Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from announcement import __version__
from announcement.enums import DispatchPolicy

# Conditionally import LoggingConfig only for type checking purposes.
# This prevents circular imports at runtime.
if TYPE_CHECKING:
    from announcement.logging import LoggingConfig


class Settings(BaseSettings):
    """
    Configuration settings for Announcement dispatchers.

    Values are read from environment variables prefixed with
    `ANNOUNCEMENT_` (for example `ANNOUNCEMENT_DISPATCH_POLICY=concurrent`).
    Every dispatcher reads its defaults from here; constructor arguments of
    `Announcement` override them per instance.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANNOUNCEMENT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Debug mode flag. When set, the package logger is switched to DEBUG.
    debug: bool = False
    # The logging level for the package (e.g., "INFO", "DEBUG", "WARNING").
    logging_level: str = "INFO"
    # The version string of the package.
    version: str = __version__
    # Flag indicating if logging has been set up.
    is_logging_setup: bool = False

    # How the listeners of one emit batch are run. "serialized" runs them one
    # after another to completion; "concurrent" starts each as its own task.
    dispatch_policy: DispatchPolicy = DispatchPolicy.SERIALIZED
    # When True a failing listener is logged and the batch carries on. When
    # False the exception escapes the dispatcher's task group.
    suppress_listener_errors: bool = True

    @property
    def logging_config(self) -> "LoggingConfig" | None:
        """
        Returns the logging configuration based on the current settings.

        Returns:
            A `StandardLoggingConfig` configured with `logging_level`, or
            DEBUG when `debug` is enabled.
        """
        # Imported locally since announcement.logging reads these settings.
        from announcement.core.utils.logging import StandardLoggingConfig

        level = "DEBUG" if self.debug else self.logging_level
        return StandardLoggingConfig(level=level)

    def dict(self, exclude_none: bool = False, upper: bool = False) -> dict[str, Any]:  # type: ignore[override]
        """
        Dumps all the settings into a Python dictionary.

        Args:
            exclude_none: If True, keys with a value of None are excluded.
            upper: If True, converts all keys to uppercase.

        Returns:
            A dictionary containing the settings data.
        """
        original = self.model_dump(exclude_none=exclude_none)
        if not upper:
            return original
        return {k.upper(): v for k, v in original.items()}

    def tuple(self, exclude_none: bool = False, upper: bool = False) -> list[tuple[str, Any]]:
        """
        Dumps all the settings into a list of key-value tuples.

        Args:
            exclude_none: If True, tuples whose value is None are excluded.
            upper: If True, converts the keys to uppercase.

        Returns:
            A list of (key, value) tuples containing the settings data.
        """
        return list(self.dict(exclude_none=exclude_none, upper=upper).items())
