"""Configuration package."""

from comicrestore.config.settings import (
    RestoreSettings,
    get_settings,
    load_settings,
    reload_settings,
)

__all__ = ["RestoreSettings", "get_settings", "load_settings", "reload_settings"]
