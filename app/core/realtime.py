"""
Live query invalidation over the Channels layer.

Clients hold subscriptions to read queries (sidebar, message list, typing
list, ...) over a websocket. When a write changes the data behind a query,
services publish an invalidation to a channel group; every consumer in that
group re-runs the affected subscriptions and pushes fresh results.

Invalidations are sent after the surrounding transaction commits so that a
subscriber never re-reads state older than the write that notified it.

Groups:
    directory               - any change to the user directory
    conversation_<id>       - messages, reactions, typing or membership of one conversation
    user_<external_id>      - read receipts and sidebar of one user

Usage:
    from core.realtime import publish, conversation_group

    publish([conversation_group(conversation.id)], topic="messages")
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DIRECTORY_GROUP = "directory"

# Channel group names allow ASCII alphanumerics, hyphens, underscores and periods
_INVALID_GROUP_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def conversation_group(conversation_id) -> str:
    return f"conversation_{conversation_id}"


def user_group(external_id: str) -> str:
    return f"user_{_INVALID_GROUP_CHARS.sub('_', external_id)}"[:99]


def publish(groups: Iterable[str], topic: str) -> None:
    """
    Schedule an invalidation for each group once the transaction commits.

    Outside a transaction the message is sent immediately.

    Args:
        groups: Channel group names to notify
        topic: Which kind of data changed (e.g. "messages", "typing")
    """
    groups = list(dict.fromkeys(groups))
    if not groups:
        return

    transaction.on_commit(lambda: _send(groups, topic))


def _send(groups: list[str], topic: str) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    for group in groups:
        try:
            async_to_sync(channel_layer.group_send)(
                group,
                {"type": "live.invalidate", "group": group, "topic": topic},
            )
        except Exception:
            # A lost invalidation only delays a refresh; the write already committed
            logger.exception(f"Failed to publish '{topic}' invalidation to {group}")
