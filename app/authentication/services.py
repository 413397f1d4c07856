"""
User directory service.

This module contains the business logic for the user directory:
- Upserting the caller's profile from identity claims
- Listing everyone else for the "start a chat" picker
- Online presence flag, heartbeats and server-side expiry
- Counting open websocket connections so a user with several tabs stays
  online until the last one closes

Related files:
    - models.py: User model
    - identity.py: Identity (authenticated caller)
    - tasks.py: Periodic presence expiry

Usage:
    from authentication.services import UserDirectoryService

    result = UserDirectoryService.store(request.user)
    if result.success:
        user = result.data
"""

from __future__ import annotations

from datetime import timedelta

from django.core.cache import cache
from django.db import IntegrityError
from django.utils import timezone

from authentication.constants import PRESENCE_CONFIG
from authentication.identity import get_caller_id
from authentication.models import User
from core.realtime import DIRECTORY_GROUP, publish
from core.services import BaseService, ServiceResult


class UserDirectoryService(BaseService):
    """
    Directory of users keyed by identity subject.

    Methods:
        store: Create or refresh the caller's record
        get_all: Every user except the caller
        update_status: Set the caller's online flag
        heartbeat: Refresh the caller's last_seen_at
        connection_opened: Count a new websocket and mark the caller online
        connection_closed: Uncount a websocket, offline once none remain
        expire_stale_presence: Mark users with no recent heartbeat offline
    """

    @classmethod
    def store(cls, identity) -> ServiceResult[User]:
        """
        Upsert the caller's directory record.

        The first call inserts a record with name, email and image taken
        from identity claims and the user marked online. Later calls return
        the existing record, refreshing name and image when the provider
        reports different values.

        Args:
            identity: Authenticated caller

        Returns:
            ServiceResult with the User, or NOT_AUTHENTICATED failure
        """
        logger = cls.get_logger()
        subject = get_caller_id(identity)

        if subject is None:
            return ServiceResult.failure(
                "Called store without authentication present",
                error_code="NOT_AUTHENTICATED",
            )

        name = getattr(identity, "name", None) or PRESENCE_CONFIG.DEFAULT_NAME
        email = getattr(identity, "email", None) or ""
        image_url = getattr(identity, "picture_url", None) or ""

        user = User.objects.filter(external_id=subject).first()

        if user is None:
            try:
                with cls.atomic():
                    user = User.objects.create_user(
                        external_id=subject,
                        name=name,
                        email=email,
                        image_url=image_url,
                        is_online=True,
                        last_seen_at=timezone.now(),
                    )
            except IntegrityError:
                # Concurrent first sign-in from another tab won the insert
                user = User.objects.get(external_id=subject)
                logger.debug(f"Directory record for {subject} created concurrently")
            else:
                logger.info(f"Created directory record for {subject}")
                publish([DIRECTORY_GROUP], topic="users")
                return ServiceResult.success(user)

        if user.name != name or user.image_url != image_url:
            user.name = name
            user.image_url = image_url
            user.save(update_fields=["name", "image_url", "updated_at"])
            logger.info(f"Refreshed directory profile for {subject}")
            publish([DIRECTORY_GROUP], topic="users")

        return ServiceResult.success(user)

    @classmethod
    def get_all(cls, identity) -> list[User]:
        """
        Return every user except the caller.

        Staff accounts exist only for the Django admin and are not listed.
        Unauthenticated callers get an empty list.
        """
        subject = get_caller_id(identity)
        if subject is None:
            return []

        return list(
            User.objects.filter(is_active=True, is_staff=False)
            .exclude(external_id=subject)
            .order_by("name", "external_id")
        )

    @classmethod
    def update_status(cls, identity, is_online: bool) -> ServiceResult[None]:
        """
        Set the caller's online flag.

        Silently does nothing when the caller is unauthenticated or has no
        directory record yet.
        """
        subject = get_caller_id(identity)
        if subject is None:
            return ServiceResult.success(None)

        fields = {"is_online": bool(is_online), "updated_at": timezone.now()}
        if is_online:
            fields["last_seen_at"] = fields["updated_at"]

        updated = User.objects.filter(external_id=subject).update(**fields)

        if updated:
            cls.get_logger().debug(
                f"User {subject} is now {'online' if is_online else 'offline'}"
            )
            publish([DIRECTORY_GROUP], topic="users")

        return ServiceResult.success(None)

    @classmethod
    def heartbeat(cls, identity) -> ServiceResult[None]:
        """
        Record that the caller is still connected.

        Keeps the user online against expire_stale_presence and keeps their
        websocket connection count alive. Flips the flag back to online (and
        notifies the directory) if it had expired.
        """
        subject = get_caller_id(identity)
        if subject is None:
            return ServiceResult.success(None)

        now = timezone.now()
        was_offline = User.objects.filter(
            external_id=subject, is_online=False
        ).exists()

        User.objects.filter(external_id=subject).update(
            is_online=True, last_seen_at=now, updated_at=now
        )
        cache.touch(cls._connections_key(subject), PRESENCE_CONFIG.TTL_SECONDS)

        if was_offline:
            publish([DIRECTORY_GROUP], topic="users")

        return ServiceResult.success(None)

    @classmethod
    def expire_stale_presence(cls, ttl_seconds: int | None = None) -> int:
        """
        Mark online users without a recent heartbeat as offline.

        Covers clients that vanished without saying goodbye (crashed tab,
        lost network). Users that never sent a heartbeat are left alone
        until they do.

        Args:
            ttl_seconds: Staleness threshold, defaults to PRESENCE_CONFIG.TTL_SECONDS

        Returns:
            Number of users marked offline
        """
        ttl = ttl_seconds if ttl_seconds is not None else PRESENCE_CONFIG.TTL_SECONDS
        now = timezone.now()
        cutoff = now - timedelta(seconds=ttl)

        count = User.objects.filter(
            is_online=True, last_seen_at__lt=cutoff
        ).update(is_online=False, updated_at=now)

        if count:
            cls.get_logger().info(f"Marked {count} users offline after {ttl}s without heartbeat")
            publish([DIRECTORY_GROUP], topic="users")

        return count

    @classmethod
    def _connections_key(cls, subject: str) -> str:
        return PRESENCE_CONFIG.CONNECTIONS_CACHE_KEY.format(subject=subject)

    @classmethod
    def connection_opened(cls, identity) -> int:
        """
        Record a newly opened websocket and mark the caller online.

        The per-user count lives in the cache and expires with the presence
        TTL unless heartbeats refresh it, so counts leaked by a crashed
        worker do not keep a user online forever.

        Returns:
            Number of open connections for the caller (0 if anonymous)
        """
        subject = get_caller_id(identity)
        if subject is None:
            return 0

        key = cls._connections_key(subject)
        try:
            count = cache.incr(key)
        except ValueError:
            # Key doesn't exist - first connection
            cache.set(key, 1, timeout=PRESENCE_CONFIG.TTL_SECONDS)
            count = 1
        else:
            cache.touch(key, PRESENCE_CONFIG.TTL_SECONDS)

        cls.update_status(identity, True)
        return count

    @classmethod
    def connection_closed(cls, identity) -> int:
        """
        Record a closed websocket.

        The caller is marked offline only when no other connection of
        theirs remains open.

        Returns:
            Number of connections still open for the caller
        """
        subject = get_caller_id(identity)
        if subject is None:
            return 0

        key = cls._connections_key(subject)
        try:
            remaining = cache.decr(key)
        except ValueError:
            remaining = 0

        if remaining > 0:
            cls.get_logger().debug(f"User {subject} still has {remaining} open connections")
            return remaining

        cache.delete(key)
        cls.update_status(identity, False)
        return 0
