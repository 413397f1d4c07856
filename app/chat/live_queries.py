"""
Queries available as live websocket subscriptions.

Each LiveQuery knows how to compute its result for a caller and which
(channel group, topic) invalidations make that result stale. The consumer
joins the groups, re-runs the query when a matching invalidation arrives
and pushes the new result.

Queries:
    users.getAll            - directory without the caller
    messages.list           - {"conversation_id"}: messages with reactions
    typing.getActive        - {"conversation_id"}: names of users typing
    sidebar.getSidebarData  - the caller's sidebar

Resolvers are synchronous (ORM) and raise core.exceptions errors for bad
arguments or refused access.

A query whose result goes stale with time rather than with a write (typing
states expiring) also has expires_at; the consumer re-runs it then.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from authentication.serializers import UserSerializer
from authentication.services import UserDirectoryService
from chat.serializers import MessageSerializer, SidebarEntrySerializer
from chat.services import MessageService, SidebarService, TypingService
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.realtime import DIRECTORY_GROUP, conversation_group, user_group

Dependency = tuple[str, str]


@dataclass(frozen=True)
class LiveQuery:
    name: str
    resolve: Callable[[Any, str, dict], Any]
    dependencies: Callable[[str, dict], set[Dependency]]
    expires_at: Callable[[str, dict], datetime | None] | None = None


def _conversation_id(args: dict) -> int:
    value = args.get("conversation_id")
    if isinstance(value, bool):
        value = None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "conversation_id must be an integer",
            error_code="INVALID_ARGS",
            details={"conversation_id": value},
        )


def _unwrap(result):
    """Return result.data or raise the matching application error."""
    if result.success:
        return result.data

    code = result.error_code or ""
    if code.endswith("_NOT_FOUND"):
        raise NotFoundError(result.error, error_code=code)
    if code in ("NOT_PARTICIPANT", "PERMISSION_DENIED"):
        raise PermissionDeniedError(result.error, error_code=code)
    raise ValidationError(result.error, error_code=code or None)


# =============================================================================
# Resolvers
# =============================================================================


def _users(identity, caller_id: str, args: dict) -> list:
    return UserSerializer(UserDirectoryService.get_all(identity), many=True).data


def _messages(identity, caller_id: str, args: dict) -> list:
    messages = _unwrap(
        MessageService.list_messages(caller_id, _conversation_id(args))
    )
    return MessageSerializer(messages, many=True, context={"caller_id": caller_id}).data


def _typing(identity, caller_id: str, args: dict) -> list[str]:
    return _unwrap(TypingService.get_active(caller_id, _conversation_id(args)))


def _sidebar(identity, caller_id: str, args: dict) -> list:
    return SidebarEntrySerializer(
        SidebarService.get_sidebar_data(caller_id), many=True
    ).data


LIVE_QUERIES: dict[str, LiveQuery] = {
    query.name: query
    for query in (
        LiveQuery(
            name="users.getAll",
            resolve=_users,
            dependencies=lambda caller_id, args: {(DIRECTORY_GROUP, "users")},
        ),
        LiveQuery(
            name="messages.list",
            resolve=_messages,
            dependencies=lambda caller_id, args: {
                (conversation_group(_conversation_id(args)), "messages")
            },
        ),
        LiveQuery(
            name="typing.getActive",
            resolve=_typing,
            dependencies=lambda caller_id, args: {
                (conversation_group(_conversation_id(args)), "typing")
            },
            expires_at=lambda caller_id, args: TypingService.next_expiry(
                caller_id, _conversation_id(args)
            ),
        ),
        LiveQuery(
            name="sidebar.getSidebarData",
            resolve=_sidebar,
            dependencies=lambda caller_id, args: {
                (user_group(caller_id), "sidebar"),
                (DIRECTORY_GROUP, "users"),
            },
        ),
    )
}


def get_live_query(name: str) -> LiveQuery:
    try:
        return LIVE_QUERIES[name]
    except (KeyError, TypeError):
        raise ValidationError(f"Unknown query: {name}", error_code="UNKNOWN_QUERY")
