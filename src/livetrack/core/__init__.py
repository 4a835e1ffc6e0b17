"""Livetrack core module.

Shared components used across the service:
- Configuration management
- Cached settings accessor
"""

from livetrack.core.config import (
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    LiveFeedSettings,
    Settings,
)
from livetrack.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "LiveFeedSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
