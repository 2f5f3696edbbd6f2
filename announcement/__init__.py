__version__ = "0.1.0"

from announcement.enums import DispatchPolicy  # noqa: E402
from announcement.event import Announcement  # noqa: E402
from announcement.handler import CommandHandler  # noqa: E402
from announcement.registry import Registry  # noqa: E402

__all__ = [
    "Announcement",
    "CommandHandler",
    "DispatchPolicy",
    "Registry",
]
