"""
WebSocket consumer for live queries.

Clients subscribe to read queries and receive a fresh result every time
the data behind one changes. Writes still go through the REST API; the
services publish invalidations (see core/realtime.py) that this consumer
turns into pushed results.

Consumers:
    LiveQueryConsumer: One connection per client tab

Authentication:
    Identity token passed as query parameter or subprotocol.
    JWTAuthMiddleware attaches the caller Identity to self.scope["user"].
    Connections without an identity are closed with code 4001.

Presence:
    Connections are counted per user (several tabs are normal). The first
    connection marks the caller online; closing the last one marks them
    offline and clears their typing indicators. Heartbeat frames keep the
    presence expiry task from marking a quiet connection offline.

Expiry:
    Queries with an expires_at (typing.getActive) are re-run when their
    result goes stale with time, since no write announces an expiry.

Message Types (from client):
    - subscribe: {"type": "subscribe", "id": "s1", "query": "messages.list",
                  "args": {"conversation_id": 12}}
    - unsubscribe: {"type": "unsubscribe", "id": "s1"}
    - heartbeat: {"type": "heartbeat"}

Message Types (to client):
    - result: {"type": "result", "id": "s1", "query": "...", "data": [...]}
    - error: {"type": "error", "id": "s1", "error": "...", "error_code": "..."}
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.utils import timezone

from authentication.identity import get_caller_id
from authentication.services import UserDirectoryService
from chat.live_queries import LiveQuery, get_live_query
from chat.services import TypingService
from core.exceptions import BaseApplicationError, ValidationError

logger = logging.getLogger(__name__)

# Re-run slightly after the expiry so the stale row is past the cutoff
REFRESH_GRACE_SECONDS = 0.05


@dataclass
class Subscription:
    query: LiveQuery
    args: dict
    dependencies: set[tuple[str, str]] = field(default_factory=set)
    last_data: Any = None


class LiveQueryConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer serving live query subscriptions.

    Attributes:
        caller_id: External id of the connected user
        subscriptions: Active subscriptions keyed by client-chosen id
        joined_groups: Channel groups this connection is a member of
        refresh_timers: Pending expiry re-runs keyed by subscription id
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.caller_id: str | None = None
        self.subscriptions: dict[str, Subscription] = {}
        self.joined_groups: set[str] = set()
        self.refresh_timers: dict[str, asyncio.Task] = {}

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects anonymous connections; otherwise accepts and counts the
        connection, which marks the caller online.
        """
        user = self.scope.get("user")
        self.caller_id = get_caller_id(user)

        if self.caller_id is None:
            logger.warning("Rejected unauthenticated live query connection")
            await self.close(code=4001)
            return

        # Browsers drop the connection unless the offered subprotocol is echoed
        subprotocols = self.scope.get("subprotocols") or []
        await self.accept(subprotocol="jwt" if "jwt" in subprotocols else None)
        await self._open_connection()
        logger.info(f"User {self.caller_id} connected to live queries")

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Leaves every channel group. When this was the caller's last open
        connection, marks them offline and clears their typing indicators.
        """
        if self.caller_id is None:
            return

        for sub_id in list(self.refresh_timers):
            self._cancel_refresh(sub_id)
        for group in list(self.joined_groups):
            await self.channel_layer.group_discard(group, self.channel_name)
        self.joined_groups.clear()
        self.subscriptions.clear()

        remaining = await self._close_connection()
        if remaining == 0:
            await self._clear_typing()
        logger.info(
            f"User {self.caller_id} disconnected from live queries (code {close_code})"
        )

    async def receive_json(self, content):
        """
        Handle incoming WebSocket frames.

        Args:
            content: Parsed JSON frame from client
        """
        if not isinstance(content, dict):
            await self._send_error(None, ValidationError("Frame must be an object"))
            return

        frame_type = content.get("type")

        if frame_type == "subscribe":
            await self._handle_subscribe(content)
        elif frame_type == "unsubscribe":
            await self._handle_unsubscribe(content)
        elif frame_type == "heartbeat":
            await self._heartbeat()
        else:
            await self._send_error(
                content.get("id"),
                ValidationError(
                    f"Unknown message type: {frame_type}",
                    error_code="UNKNOWN_MESSAGE_TYPE",
                ),
            )

    async def _handle_subscribe(self, content):
        sub_id = content.get("id")
        if not isinstance(sub_id, str) or not sub_id:
            await self._send_error(
                sub_id,
                ValidationError("Subscription id is required", error_code="INVALID_ARGS"),
            )
            return

        args = content.get("args") or {}

        try:
            if not isinstance(args, dict):
                raise ValidationError("args must be an object", error_code="INVALID_ARGS")
            query = get_live_query(content.get("query"))
            dependencies = query.dependencies(self.caller_id, args)
            subscription = Subscription(query=query, args=args, dependencies=dependencies)
            # Resolve once before joining so refused queries leave no trace
            data = await self._resolve(subscription)
        except BaseApplicationError as e:
            await self._send_error(sub_id, e)
            return

        await self._drop(sub_id)
        self.subscriptions[sub_id] = subscription
        for group, _topic in dependencies:
            if group not in self.joined_groups:
                await self.channel_layer.group_add(group, self.channel_name)
                self.joined_groups.add(group)

        logger.debug(f"User {self.caller_id} subscribed {sub_id} to {query.name}")
        await self._send_result(sub_id, subscription, data)
        await self._schedule_refresh(sub_id, subscription)

    async def _handle_unsubscribe(self, content):
        await self._drop(content.get("id"))

    async def _drop(self, sub_id):
        """Remove a subscription and leave groups nothing else needs."""
        self._cancel_refresh(sub_id)
        if self.subscriptions.pop(sub_id, None) is None:
            return

        still_needed = {
            group
            for subscription in self.subscriptions.values()
            for group, _topic in subscription.dependencies
        }
        for group in self.joined_groups - still_needed:
            await self.channel_layer.group_discard(group, self.channel_name)
        self.joined_groups &= still_needed

    async def live_invalidate(self, event):
        """
        Handle live.invalidate events from the channel layer.

        Re-runs and pushes every subscription that depends on the
        (group, topic) of the event.
        """
        key = (event.get("group"), event.get("topic"))

        for sub_id, subscription in list(self.subscriptions.items()):
            if key in subscription.dependencies:
                await self._refresh(sub_id, subscription)

    async def _refresh(self, sub_id, subscription, skip_unchanged: bool = False):
        """Re-run one subscription and push the result."""
        try:
            data = await self._resolve(subscription)
        except BaseApplicationError as e:
            await self._send_error(sub_id, e)
            await self._drop(sub_id)
            return
        if self.subscriptions.get(sub_id) is not subscription:
            return
        if not (skip_unchanged and data == subscription.last_data):
            await self._send_result(sub_id, subscription, data)
        await self._schedule_refresh(sub_id, subscription)

    async def _schedule_refresh(self, sub_id, subscription):
        """Arrange a re-run for when the pushed result expires, if it can."""
        self._cancel_refresh(sub_id)
        if subscription.query.expires_at is None:
            return

        expires_at = await self._expires_at(subscription)
        if expires_at is None or self.subscriptions.get(sub_id) is not subscription:
            return

        delay = max((expires_at - timezone.now()).total_seconds(), 0)
        self.refresh_timers[sub_id] = asyncio.create_task(
            self._refresh_later(sub_id, subscription, delay + REFRESH_GRACE_SECONDS)
        )

    async def _refresh_later(self, sub_id, subscription, delay: float):
        await asyncio.sleep(delay)
        if self.subscriptions.get(sub_id) is not subscription:
            return
        self.refresh_timers.pop(sub_id, None)
        logger.debug(f"Refreshing expired {subscription.query.name} for {sub_id}")
        await self._refresh(sub_id, subscription, skip_unchanged=True)

    def _cancel_refresh(self, sub_id):
        timer = self.refresh_timers.pop(sub_id, None)
        if timer is not None:
            timer.cancel()

    async def _send_result(self, sub_id, subscription, data):
        subscription.last_data = data
        await self.send_json(
            {
                "type": "result",
                "id": sub_id,
                "query": subscription.query.name,
                "data": data,
            }
        )

    async def _send_error(self, sub_id, error: BaseApplicationError):
        await self.send_json({"type": "error", "id": sub_id, **error.to_dict()})

    @database_sync_to_async
    def _resolve(self, subscription: Subscription):
        return subscription.query.resolve(
            self.scope.get("user"), self.caller_id, subscription.args
        )

    @database_sync_to_async
    def _expires_at(self, subscription: Subscription):
        return subscription.query.expires_at(self.caller_id, subscription.args)

    @database_sync_to_async
    def _open_connection(self) -> int:
        return UserDirectoryService.connection_opened(self.scope.get("user"))

    @database_sync_to_async
    def _close_connection(self) -> int:
        return UserDirectoryService.connection_closed(self.scope.get("user"))

    @database_sync_to_async
    def _heartbeat(self) -> None:
        UserDirectoryService.heartbeat(self.scope.get("user"))

    @database_sync_to_async
    def _clear_typing(self) -> None:
        TypingService.clear_for_user(self.caller_id)
