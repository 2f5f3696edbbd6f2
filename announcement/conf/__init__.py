from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from announcement.conf.global_settings import Settings


@lru_cache
def get_settings() -> Settings:
    from announcement.conf.global_settings import Settings

    return Settings()


def reload_settings() -> None:
    """
    Drops the cached settings so the next access re-reads the environment.
    """
    get_settings.cache_clear()


class SettingsForward:
    """
    A proxy for the actual settings object.

    Attribute access is forwarded to the cached `Settings` instance, which is
    only built on first access. This lets modules import `settings` at import
    time while the environment is still being prepared.
    """

    def __getattribute__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(get_settings(), name, value)


settings: Settings = SettingsForward()  # type: ignore[assignment]
