"""
Constants for the user directory.

Values can be overridden via the CHAT dict in Django settings.
"""

from typing import Final

from django.conf import settings

_overrides = getattr(settings, "CHAT", {})


class PRESENCE_CONFIG:
    """Configuration for online presence."""

    # Users with no heartbeat for this long are marked offline by the beat task
    TTL_SECONDS: Final[int] = _overrides.get("PRESENCE_TTL_SECONDS", 120)

    DEFAULT_NAME: Final[str] = "Anonymous"

    # Cache key counting a user's open websocket connections
    CONNECTIONS_CACHE_KEY: Final[str] = "presence:connections:{subject}"
