"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations, messages and the per-user state around
them.

Services:
    ConversationService: Direct get-or-create and group creation
    MessageService: Send, soft delete and list messages
    ReactionService: Toggle reactions and group them for display
    TypingService: Typing indicators with server-side expiry
    ReadReceiptService: Last-read timestamps
    SidebarService: Conversation previews with unread counts

Design Principles:
    - Services are stateless (use class methods)
    - Callers are identified by identity subject (User.external_id)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures raise exceptions
    - Uniqueness is enforced by database constraints; a lost race surfaces
      as IntegrityError inside a savepoint and is resolved by re-reading
    - Every write publishes live-query invalidations after commit

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_direct(caller_id, other_id)
    if result.success:
        conversation = result.data

    result = MessageService.send(caller_id, conversation.id, "Hello!")
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Count, OuterRef, Prefetch, Subquery
from django.utils import timezone

from authentication.models import User
from chat.constants import (
    GROUP_CONFIG,
    MESSAGE_CONFIG,
    REACTION_CONFIG,
    SIDEBAR_CONFIG,
    TYPING_CONFIG,
)
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageReaction,
    Participant,
    ReadReceipt,
    TypingState,
)
from core.realtime import conversation_group, publish, user_group
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _participant_ids(conversation_id: int) -> list[str]:
    return list(
        Participant.objects.filter(conversation_id=conversation_id).values_list(
            "user_id", flat=True
        )
    )


def _publish_sidebar(user_ids: Iterable[str]) -> None:
    publish([user_group(user_id) for user_id in user_ids], topic="sidebar")


def _get_membership(
    caller_id: str, conversation_id: int
) -> tuple[Conversation | None, ServiceResult | None]:
    """
    Load a conversation the caller belongs to.

    Returns:
        (conversation, None) on success, (None, failure) otherwise
    """
    conversation = Conversation.objects.filter(id=conversation_id).first()
    if conversation is None:
        return None, ServiceResult.failure(
            "Conversation not found",
            error_code="CONVERSATION_NOT_FOUND",
        )

    if not conversation.has_participant(caller_id):
        return None, ServiceResult.failure(
            "You are not a participant in this conversation",
            error_code="NOT_PARTICIPANT",
        )

    return conversation, None


# =============================================================================
# Conversation Registry
# =============================================================================


class ConversationService(BaseService):
    """
    Service for conversation creation.

    Methods:
        get_or_create_direct: The one direct conversation between two users
        create_group: Create a new named group conversation
    """

    @classmethod
    def get_or_create_direct(
        cls,
        caller_id: str,
        other_user_id: str,
    ) -> ServiceResult[Conversation]:
        """
        Create or retrieve the direct conversation between two users.

        Direct conversations are unique per unordered user pair. Calling this
        any number of times, from either side, returns the same conversation.

        Implementation:
            1. Validate users are different and both exist
            2. Canonicalize order (lower external id first)
            3. Look up existing DirectConversationPair
            4. If not found, create conversation, pair and participants
               in one transaction
            5. If a concurrent call created the pair first, return theirs

        Args:
            caller_id: External id of the caller
            other_user_id: External id of the other user

        Returns:
            ServiceResult with Conversation (existing or new)

        Error codes:
            SAME_USER: Cannot create direct conversation with yourself
            USER_NOT_FOUND: Either user has no directory record
        """
        logger = cls.get_logger()

        if caller_id == other_user_id:
            return ServiceResult.failure(
                "Cannot create a direct conversation with yourself",
                error_code="SAME_USER",
            )

        found = set(
            User.objects.filter(
                external_id__in=[caller_id, other_user_id]
            ).values_list("external_id", flat=True)
        )
        if found != {caller_id, other_user_id}:
            return ServiceResult.failure(
                "User not found",
                error_code="USER_NOT_FOUND",
            )

        user_lower, user_higher = DirectConversationPair.canonical(
            caller_id, other_user_id
        )

        existing = cls._find_direct(user_lower, user_higher)
        if existing is not None:
            logger.debug(
                f"Found existing direct conversation {existing.id} "
                f"between users {user_lower} and {user_higher}"
            )
            return ServiceResult.success(existing)

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    group_name="",
                    created_by_id=caller_id,
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower_id=user_lower,
                    user_higher_id=user_higher,
                )
                Participant.objects.bulk_create(
                    [
                        Participant(conversation=conversation, user_id=user_lower),
                        Participant(conversation=conversation, user_id=user_higher),
                    ]
                )
        except IntegrityError:
            existing = cls._find_direct(user_lower, user_higher)
            if existing is None:
                raise
            logger.warning(
                f"Concurrent first contact between {user_lower} and {user_higher}; "
                f"using conversation {existing.id}"
            )
            return ServiceResult.success(existing)

        logger.info(
            f"Created direct conversation {conversation.id} "
            f"between users {user_lower} and {user_higher}"
        )
        _publish_sidebar([user_lower, user_higher])

        return ServiceResult.success(conversation)

    @classmethod
    def _find_direct(cls, user_lower: str, user_higher: str) -> Conversation | None:
        pair = (
            DirectConversationPair.objects.select_related("conversation")
            .filter(user_lower_id=user_lower, user_higher_id=user_higher)
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def create_group(
        cls,
        caller_id: str,
        member_ids: list[str],
        group_name: str,
    ) -> ServiceResult[Conversation]:
        """
        Create a new group conversation.

        Participants are the caller plus every member id, with duplicates
        (including the caller listed as a member) removed.

        Args:
            caller_id: External id of the creator
            member_ids: External ids of the other members
            group_name: Display name of the group

        Returns:
            ServiceResult with the new Conversation

        Error codes:
            GROUP_NAME_REQUIRED: Name is empty or whitespace
            INVALID_GROUP_NAME: Name is longer than GROUP_CONFIG.MAX_NAME_LENGTH
            MEMBERS_REQUIRED: No members besides the caller
            GROUP_TOO_LARGE: More than GROUP_CONFIG.MAX_SIZE participants
            USER_NOT_FOUND: A member (or the caller) has no directory record
        """
        name = (group_name or "").strip()
        if not name:
            return ServiceResult.failure(
                "Group name is required",
                error_code="GROUP_NAME_REQUIRED",
            )
        if len(name) > GROUP_CONFIG.MAX_NAME_LENGTH:
            return ServiceResult.failure(
                f"Group name cannot exceed {GROUP_CONFIG.MAX_NAME_LENGTH} characters",
                error_code="INVALID_GROUP_NAME",
            )

        # Ordered union: caller first, then members in the order given
        participant_ids = list(dict.fromkeys([caller_id, *member_ids]))

        if len(participant_ids) < 2:
            return ServiceResult.failure(
                "Select at least one other member",
                error_code="MEMBERS_REQUIRED",
            )
        if len(participant_ids) > GROUP_CONFIG.MAX_SIZE:
            return ServiceResult.failure(
                f"Groups cannot have more than {GROUP_CONFIG.MAX_SIZE} participants",
                error_code="GROUP_TOO_LARGE",
            )

        found = set(
            User.objects.filter(external_id__in=participant_ids).values_list(
                "external_id", flat=True
            )
        )
        missing = [user_id for user_id in participant_ids if user_id not in found]
        if missing:
            return ServiceResult.failure(
                "User not found",
                error_code="USER_NOT_FOUND",
                errors={"participant_ids": missing},
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                group_name=name,
                created_by_id=caller_id,
            )
            Participant.objects.bulk_create(
                [
                    Participant(conversation=conversation, user_id=user_id)
                    for user_id in participant_ids
                ]
            )

        cls.get_logger().info(
            f"Created group conversation {conversation.id} '{name}' "
            f"by {caller_id} with {len(participant_ids)} participants"
        )
        _publish_sidebar(participant_ids)

        return ServiceResult.success(conversation)


# =============================================================================
# Message Store
# =============================================================================


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send: Append a message and clear the sender's typing state
        remove: Soft delete a message (sender only)
        list_messages: Messages of a conversation in creation order
    """

    @classmethod
    def send(
        cls,
        caller_id: str,
        conversation_id: int,
        text: str,
    ) -> ServiceResult[Message]:
        """
        Send a message to a conversation.

        The message, the conversation's last_message_at and the removal of
        the caller's typing state are committed together.

        Error codes:
            EMPTY_CONTENT: Text is empty or whitespace only
            CONTENT_TOO_LONG: Text exceeds MESSAGE_CONFIG.MAX_CONTENT_LENGTH
            CONVERSATION_NOT_FOUND: No such conversation
            NOT_PARTICIPANT: Caller is not a member
        """
        text = text or ""
        if not text.strip():
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(text) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        conversation, failure = _get_membership(caller_id, conversation_id)
        if failure:
            return failure

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender_id=caller_id,
                text=text,
            )
            Conversation.objects.filter(id=conversation.id).update(
                last_message_at=message.created_at
            )
            cleared, _ = TypingState.objects.filter(
                conversation=conversation, user_id=caller_id
            ).delete()

        cls.get_logger().debug(
            f"User {caller_id} sent message {message.id} to conversation {conversation.id}"
        )

        publish([conversation_group(conversation.id)], topic="messages")
        if cleared:
            publish([conversation_group(conversation.id)], topic="typing")
        _publish_sidebar(_participant_ids(conversation.id))

        return ServiceResult.success(message)

    @classmethod
    def remove(cls, caller_id: str, message_id: int) -> ServiceResult[Message]:
        """
        Soft delete a message.

        Only the sender may delete. Text and reactions are kept; readers see
        "Message deleted" and the message stops counting as unread.
        Deleting an already deleted message succeeds without changes.

        Error codes:
            MESSAGE_NOT_FOUND: No such message
            PERMISSION_DENIED: Caller is not the sender
        """
        message = Message.objects.filter(id=message_id).first()
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )

        if message.sender_id != caller_id:
            return ServiceResult.failure(
                "You can only delete your own messages",
                error_code="PERMISSION_DENIED",
            )

        if message.is_deleted:
            return ServiceResult.success(message)

        message.soft_delete()

        cls.get_logger().info(f"User {caller_id} deleted message {message.id}")

        publish([conversation_group(message.conversation_id)], topic="messages")
        _publish_sidebar(_participant_ids(message.conversation_id))

        return ServiceResult.success(message)

    @classmethod
    def list_messages(
        cls, caller_id: str, conversation_id: int
    ) -> ServiceResult[list[Message]]:
        """
        List every message of a conversation in creation order.

        Messages come with sender and reactions preloaded; serializers
        derive display text and reaction groups from them.

        Error codes:
            CONVERSATION_NOT_FOUND: No such conversation
            NOT_PARTICIPANT: Caller is not a member
        """
        conversation, failure = _get_membership(caller_id, conversation_id)
        if failure:
            return failure

        messages = (
            Message.objects.filter(conversation=conversation)
            .select_related("sender")
            .prefetch_related(
                Prefetch(
                    "reactions",
                    queryset=MessageReaction.objects.order_by("created_at", "id"),
                )
            )
            .order_by("created_at", "id")
        )

        return ServiceResult.success(list(messages))


class ReactionService(BaseService):
    """
    Service for message reactions.

    Methods:
        toggle_reaction: Add the caller's emoji, or remove it if present
        group_reactions: Derive per-emoji counts for display
    """

    @classmethod
    def _normalize_emoji(cls, emoji: str | None) -> str | None:
        """Return the stripped emoji, or None if it is not acceptable."""
        emoji = (emoji or "").strip()
        if not emoji or len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
            return None
        return emoji

    @classmethod
    def toggle_reaction(
        cls,
        caller_id: str,
        message_id: int,
        emoji: str,
    ) -> ServiceResult[dict]:
        """
        Toggle the caller's reaction on a message.

        If the caller already reacted with this emoji the reaction is
        removed, otherwise it is added. Toggling twice restores the
        original state.

        Returns:
            ServiceResult with {"added": bool}

        Error codes:
            INVALID_EMOJI: Empty or too long
            MESSAGE_NOT_FOUND: No such message
            MESSAGE_DELETED: Message was soft deleted
            NOT_PARTICIPANT: Caller is not a member of the conversation
        """
        emoji = cls._normalize_emoji(emoji)
        if emoji is None:
            return ServiceResult.failure(
                "Invalid emoji",
                error_code="INVALID_EMOJI",
            )

        message = (
            Message.objects.select_related("conversation").filter(id=message_id).first()
        )
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )

        if message.is_deleted:
            return ServiceResult.failure(
                "Cannot react to deleted messages",
                error_code="MESSAGE_DELETED",
            )

        if not message.conversation.has_participant(caller_id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        with cls.atomic():
            deleted, _ = MessageReaction.objects.filter(
                message=message, user_id=caller_id, emoji=emoji
            ).delete()
            added = not deleted

            if added:
                try:
                    with cls.atomic():
                        MessageReaction.objects.create(
                            message=message, user_id=caller_id, emoji=emoji
                        )
                except IntegrityError:
                    # A concurrent toggle already added it
                    logger.debug(
                        f"Reaction {emoji} by {caller_id} on {message.id} already present"
                    )

        cls.get_logger().debug(
            f"User {caller_id} {'added' if added else 'removed'} "
            f"reaction {emoji} on message {message.id}"
        )
        publish([conversation_group(message.conversation_id)], topic="messages")

        return ServiceResult.success({"added": added})

    @classmethod
    def group_reactions(
        cls, reactions: Iterable[MessageReaction], caller_id: str | None = None
    ) -> list[dict]:
        """
        Group reactions by emoji, in order of each emoji's first reaction.

        Args:
            reactions: Reactions of one message, oldest first
            caller_id: Used to flag emojis the caller reacted with

        Returns:
            List of {"emoji", "count", "user_ids", "reacted_by_me"}
        """
        groups: dict[str, dict] = {}
        for reaction in reactions:
            group = groups.setdefault(
                reaction.emoji,
                {
                    "emoji": reaction.emoji,
                    "count": 0,
                    "user_ids": [],
                    "reacted_by_me": False,
                },
            )
            group["count"] += 1
            group["user_ids"].append(reaction.user_id)
            if caller_id is not None and reaction.user_id == caller_id:
                group["reacted_by_me"] = True
        return list(groups.values())


# =============================================================================
# Typing Presence Tracker
# =============================================================================


class TypingService(BaseService):
    """
    Service for typing indicators.

    A typing state is reported while its heartbeat is younger than
    TYPING_CONFIG.TTL_SECONDS. Clients refresh it while the user types and
    clear it when they stop; expiry covers clients that vanish.

    Methods:
        set_typing: Reconcile the caller's state to typing / not typing
        get_active: Names of other users typing in a conversation
        next_expiry: When the oldest visible typing state expires
        clear_for_user: Drop every typing state of a user (disconnect)
        purge_stale: Delete expired states (periodic task)
    """

    @classmethod
    def _cutoff(cls) -> datetime:
        return timezone.now() - timedelta(seconds=TYPING_CONFIG.TTL_SECONDS)

    @classmethod
    def set_typing(
        cls,
        caller_id: str,
        conversation_id: int,
        is_typing: bool,
    ) -> ServiceResult[None]:
        """
        Set whether the caller is typing in a conversation.

        Idempotent: typing=True creates the state or refreshes its
        heartbeat, typing=False removes it if present. An unknown
        conversation is ignored.

        Error codes:
            NOT_PARTICIPANT: Caller is not a member
        """
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if conversation is None:
            return ServiceResult.success(None)

        if not conversation.has_participant(caller_id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        if not is_typing:
            deleted, _ = TypingState.objects.filter(
                conversation=conversation, user_id=caller_id
            ).delete()
            if deleted:
                publish([conversation_group(conversation.id)], topic="typing")
            return ServiceResult.success(None)

        now = timezone.now()
        cutoff = cls._cutoff()

        with cls.atomic():
            state = (
                TypingState.objects.select_for_update()
                .filter(conversation=conversation, user_id=caller_id)
                .first()
            )
            if state is None:
                try:
                    with cls.atomic():
                        TypingState.objects.create(
                            conversation=conversation,
                            user_id=caller_id,
                            updated_at=now,
                        )
                    changed = True
                except IntegrityError:
                    TypingState.objects.filter(
                        conversation=conversation, user_id=caller_id
                    ).update(updated_at=now)
                    changed = False
            else:
                changed = state.updated_at < cutoff
                state.updated_at = now
                state.save(update_fields=["updated_at"])

        if changed:
            publish([conversation_group(conversation.id)], topic="typing")

        return ServiceResult.success(None)

    @classmethod
    def get_active(
        cls, caller_id: str, conversation_id: int
    ) -> ServiceResult[list[str]]:
        """
        Names of other users currently typing in a conversation.

        Users without a display name render as "Someone".

        Error codes:
            CONVERSATION_NOT_FOUND: No such conversation
            NOT_PARTICIPANT: Caller is not a member
        """
        conversation, failure = _get_membership(caller_id, conversation_id)
        if failure:
            return failure

        states = (
            TypingState.objects.filter(
                conversation=conversation, updated_at__gte=cls._cutoff()
            )
            .exclude(user_id=caller_id)
            .select_related("user")
            .order_by("updated_at", "id")
        )

        return ServiceResult.success(
            [state.user.name or TYPING_CONFIG.UNKNOWN_USER_NAME for state in states]
        )

    @classmethod
    def next_expiry(cls, caller_id: str, conversation_id: int) -> datetime | None:
        """
        When the oldest typing state visible to the caller stops counting.

        Live subscribers re-run get_active at that moment; nothing else
        signals an expiry.

        Returns:
            Expiry time, or None if nobody else is typing
        """
        oldest = (
            TypingState.objects.filter(
                conversation_id=conversation_id, updated_at__gte=cls._cutoff()
            )
            .exclude(user_id=caller_id)
            .order_by("updated_at")
            .values_list("updated_at", flat=True)
            .first()
        )
        if oldest is None:
            return None
        return oldest + timedelta(seconds=TYPING_CONFIG.TTL_SECONDS)

    @classmethod
    def clear_for_user(cls, user_id: str) -> int:
        """
        Remove every typing state of a user.

        Returns:
            Number of states removed
        """
        conversation_ids = list(
            TypingState.objects.filter(user_id=user_id).values_list(
                "conversation_id", flat=True
            )
        )
        if not conversation_ids:
            return 0

        deleted, _ = TypingState.objects.filter(user_id=user_id).delete()
        publish([conversation_group(cid) for cid in conversation_ids], topic="typing")
        return deleted

    @classmethod
    def purge_stale(cls) -> int:
        """
        Delete typing states whose heartbeat has expired.

        Returns:
            Number of states deleted
        """
        stale = TypingState.objects.filter(updated_at__lt=cls._cutoff())
        conversation_ids = set(stale.values_list("conversation_id", flat=True))
        if not conversation_ids:
            return 0

        deleted, _ = stale.delete()

        cls.get_logger().info(f"Purged {deleted} stale typing states")
        publish([conversation_group(cid) for cid in conversation_ids], topic="typing")
        return deleted


# =============================================================================
# Read-Receipt Tracker
# =============================================================================


class ReadReceiptService(BaseService):
    """
    Service for read receipts.

    Methods:
        mark_read: Record that the caller viewed a conversation now
        get_last_read_at: The caller's last-read time, if any
    """

    @classmethod
    def mark_read(cls, caller_id: str, conversation_id: int) -> ServiceResult[None]:
        """
        Upsert the caller's receipt for a conversation to the current time.

        The timestamp never moves backwards. Unknown conversations and
        conversations the caller does not belong to are ignored.
        """
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if conversation is None or not conversation.has_participant(caller_id):
            return ServiceResult.success(None)

        now = timezone.now()

        try:
            with cls.atomic():
                _, created = ReadReceipt.objects.get_or_create(
                    user_id=caller_id,
                    conversation=conversation,
                    defaults={"last_read_at": now},
                )
        except IntegrityError:
            created = False

        if not created:
            ReadReceipt.objects.filter(
                user_id=caller_id,
                conversation=conversation,
                last_read_at__lt=now,
            ).update(last_read_at=now)

        publish([user_group(caller_id)], topic="sidebar")

        return ServiceResult.success(None)

    @classmethod
    def get_last_read_at(cls, caller_id: str, conversation_id: int) -> datetime | None:
        return (
            ReadReceipt.objects.filter(
                user_id=caller_id, conversation_id=conversation_id
            )
            .values_list("last_read_at", flat=True)
            .first()
        )


# =============================================================================
# Sidebar Aggregator
# =============================================================================


class SidebarService(BaseService):
    """
    Service for the conversation sidebar.

    Methods:
        get_sidebar_data: Preview entries for every user and group
        count_unread: Unread messages for a caller in one conversation
    """

    @classmethod
    def count_unread(
        cls,
        caller_id: str,
        conversation_id: int,
        last_read_at: datetime | None = None,
    ) -> int:
        """
        Count messages the caller has not read.

        Unread messages are not deleted, were sent by someone else, and are
        newer than the caller's last-read time (all of them without one).
        """
        messages = Message.objects.filter(
            conversation_id=conversation_id, is_deleted=False
        ).exclude(sender_id=caller_id)

        if last_read_at is not None:
            messages = messages.filter(created_at__gt=last_read_at)

        return messages.count()

    @classmethod
    def get_sidebar_data(cls, caller_id: str) -> list[dict]:
        """
        Build the caller's sidebar.

        One entry per other directory user (with the direct conversation if
        one exists) and one per group the caller belongs to. Sorted by last
        message time, newest first; entries without messages come last and
        ties keep their order (users by name, then groups by creation).

        Entry ids are "user:<external id>" and "group:<conversation id>".
        Staff accounts get no entry.

        Returns:
            List of entry dicts, see SidebarEntrySerializer
        """
        others = list(
            User.objects.filter(is_active=True, is_staff=False)
            .exclude(external_id=caller_id)
            .order_by("name", "external_id")
        )

        direct_by_user: dict[str, int] = {}
        for pair in DirectConversationPair.objects.filter(
            user_lower_id=caller_id
        ).values_list("user_higher_id", "conversation_id"):
            direct_by_user[pair[0]] = pair[1]
        for pair in DirectConversationPair.objects.filter(
            user_higher_id=caller_id
        ).values_list("user_lower_id", "conversation_id"):
            direct_by_user[pair[0]] = pair[1]

        groups = list(
            Conversation.objects.filter(
                conversation_type=ConversationType.GROUP,
                id__in=Participant.objects.filter(user_id=caller_id).values(
                    "conversation_id"
                ),
            )
            .annotate(member_count=Count("participants", distinct=True))
            .order_by("created_at", "id")
        )

        conversation_ids = list(direct_by_user.values()) + [g.id for g in groups]
        last_messages = cls._last_messages(conversation_ids)
        receipts = dict(
            ReadReceipt.objects.filter(
                user_id=caller_id, conversation_id__in=conversation_ids
            ).values_list("conversation_id", "last_read_at")
        )

        def unread(conversation_id: int | None) -> int:
            if conversation_id is None or conversation_id not in last_messages:
                return 0
            return cls.count_unread(
                caller_id, conversation_id, receipts.get(conversation_id)
            )

        entries = []

        for other in others:
            conversation_id = direct_by_user.get(other.external_id)
            entries.append(
                {
                    "id": f"{SIDEBAR_CONFIG.USER_ENTRY_PREFIX}{other.external_id}",
                    "is_group": False,
                    "conversation_id": conversation_id,
                    "other_user_id": other.external_id,
                    "name": other.name,
                    "image_url": other.image_url or None,
                    "is_online": other.is_online,
                    "last_message": cls._preview(last_messages.get(conversation_id)),
                    "unread_count": unread(conversation_id),
                    "member_count": None,
                }
            )

        for group in groups:
            entries.append(
                {
                    "id": f"{SIDEBAR_CONFIG.GROUP_ENTRY_PREFIX}{group.id}",
                    "is_group": True,
                    "conversation_id": group.id,
                    "other_user_id": None,
                    "name": group.group_name or GROUP_CONFIG.UNNAMED_PLACEHOLDER,
                    "image_url": None,
                    "is_online": None,
                    "last_message": cls._preview(last_messages.get(group.id)),
                    "unread_count": unread(group.id),
                    "member_count": group.member_count,
                }
            )

        # sorted() is stable, also with reverse=True
        return sorted(entries, key=cls._sort_key, reverse=True)

    @classmethod
    def _last_messages(cls, conversation_ids: list[int]) -> dict[int, Message]:
        """Most recent message (deleted or not) of each conversation."""
        if not conversation_ids:
            return {}

        latest = Message.objects.filter(conversation_id=OuterRef("pk")).order_by(
            "-created_at", "-id"
        )
        latest_ids = (
            Conversation.objects.filter(id__in=conversation_ids)
            .annotate(latest_id=Subquery(latest.values("id")[:1]))
            .exclude(latest_id=None)
            .values_list("latest_id", flat=True)
        )
        return {
            message.conversation_id: message
            for message in Message.objects.filter(id__in=list(latest_ids))
        }

    @staticmethod
    def _preview(message: Message | None) -> dict | None:
        if message is None:
            return None
        return {
            "id": message.id,
            "sender_id": message.sender_id,
            "text": message.display_text,
            "is_deleted": message.is_deleted,
            "created_at": message.created_at,
        }

    @staticmethod
    def _sort_key(entry: dict) -> float:
        last_message = entry["last_message"]
        if last_message is None:
            return 0.0
        return last_message["created_at"].timestamp()
