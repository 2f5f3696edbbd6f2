import logging
import logging.config
from typing import Any

from announcement.logging import LoggingConfig


class StandardLoggingConfig(LoggingConfig):
    def __init__(self, config: dict[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config = config if config is not None else self.default_config()

    def default_config(self) -> dict[str, Any]:  # noqa
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "announcement": {
                    "level": self.level,
                    "handlers": ["console"],
                },
            },
        }

    def configure(self) -> None:
        """
        Initialize Python logging for the dispatcher.

        Attaches a timestamped console handler to the 'announcement' logger
        and applies the configured level to it and all its children.
        """
        logging.config.dictConfig(self.config)

    def get_logger(self) -> Any:
        return logging.getLogger("announcement")
