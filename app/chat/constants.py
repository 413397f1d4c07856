"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, placeholder text)
- Group conversations (name and size limits)
- Typing indicators (expiry)
- Reaction management (emoji restrictions)
- Sidebar presentation

Limits are policy, not protocol: each can be overridden through the CHAT
dict in Django settings (populated from the environment, see
config/settings.py).

Import example:
    from chat.constants import MESSAGE_CONFIG, TYPING_CONFIG
"""

from typing import Final

from django.conf import settings

_overrides = getattr(settings, "CHAT", {})


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = _overrides.get("MESSAGE_MAX_LENGTH", 4000)

    # Shown instead of the original text of a soft-deleted message
    DELETED_PLACEHOLDER: Final[str] = "Message deleted"


# =============================================================================
# Group Configuration
# =============================================================================


class GROUP_CONFIG:
    """Configuration for group conversations."""

    MAX_NAME_LENGTH: Final[int] = 100
    # Total participants including the creator
    MAX_SIZE: Final[int] = _overrides.get("GROUP_MAX_SIZE", 256)

    UNNAMED_PLACEHOLDER: Final[str] = "Unnamed Group"


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # A typing state not refreshed within this window is no longer reported
    TTL_SECONDS: Final[int] = _overrides.get("TYPING_TTL_SECONDS", 5)

    UNKNOWN_USER_NAME: Final[str] = "Someone"


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Allows compound emoji (ZWJ sequences, skin tones, flags)
    MAX_EMOJI_LENGTH: Final[int] = _overrides.get("MAX_EMOJI_LENGTH", 32)


class SIDEBAR_CONFIG:
    """Configuration for sidebar entries."""

    # Entry ids are namespaced so a user id never collides with a group id
    USER_ENTRY_PREFIX: Final[str] = "user:"
    GROUP_ENTRY_PREFIX: Final[str] = "group:"
