"""Process-wide access to the livetrack settings.

get_settings() reads the environment once, validates the result and keeps
it for the life of the process. A broken configuration stops the process
at startup instead of surfacing later as a failed feed tick or request.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from livetrack.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)


def _describe_errors(exc: ValidationError) -> str:
    """One indented line per invalid field, e.g. `  - feed.interval_seconds: ...`."""
    return "\n".join(
        f"  - {'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, validate and cache the settings.

    Raises:
        SystemExit: If the environment does not form a valid configuration.
    """
    try:
        settings = Settings()  # type: ignore[call-arg]
        validate_settings(settings)
    except ValidationError as exc:
        logger.critical("Invalid livetrack configuration:\n%s", _describe_errors(exc))
        raise SystemExit(1) from exc
    except ConfigValidationError as exc:
        logger.critical(
            "Invalid livetrack configuration: %s (field: %s)",
            exc.message,
            exc.field or "-",
        )
        raise SystemExit(1) from exc

    logger.info(
        "Settings loaded: environment=%s feed_interval=%ss detail_events=%s hash=%s",
        settings.environment.value,
        settings.feed.interval_seconds,
        settings.feed.detail_event_limit,
        settings.get_config_hash()[:16],
    )
    return settings


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


def get_settings_safe() -> Settings | None:
    """Like get_settings(), but None instead of SystemExit on bad configuration."""
    try:
        return get_settings()
    except SystemExit:
        return None
