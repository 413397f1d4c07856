"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) conversations between exactly two users
- Named group conversations
- Messages with soft delete and emoji reactions
- Ephemeral typing indicators and per-user read receipts

Models:
    Conversation: Container for messages between participants
    DirectConversationPair: Enforces one direct conversation per user pair
    Participant: User membership in a conversation
    Message: Individual message within a conversation
    MessageReaction: One emoji reaction by one user on one message
    TypingState: "User is composing" marker with a heartbeat
    ReadReceipt: When a user last viewed a conversation

Design Decisions:
    - Users are referenced by their identity subject (User.external_id), so
      sender_id, user_id and friends hold the identity id directly
    - Direct conversations are unique per unordered pair, enforced by the
      database rather than by read-then-write
    - Messages are never hard deleted; soft delete keeps text and reactions
      and display layers substitute placeholder text
    - Reaction counts are derived at read time, never stored
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from chat.constants import MESSAGE_CONFIG
from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, no name
    GROUP: Named, any number of participants
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


# =============================================================================
# Conversation
# =============================================================================


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 distinct participants, empty group_name.
                Unique per user pair (enforced via DirectConversationPair).

        GROUP: Creator plus the selected members. group_name is required
               at creation.

    Fields:
        conversation_type: Type of conversation (direct or group)
        group_name: Group name (empty string for direct conversations)
        created_by: User who created the conversation
        last_message_at: Creation time of the most recent message (for sorting)

    Relationships:
        participants: Participant records for this conversation
        messages: Message records for this conversation
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    group_name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Name for group conversations (empty for direct)",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["conversation_type", "-last_message_at"],
                name="chat_conv_type_last_msg_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        if self.group_name:
            return f"Group: {self.group_name}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        """Check if this is a direct (1:1) conversation."""
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        """Check if this is a group conversation."""
        return self.conversation_type == ConversationType.GROUP

    def has_participant(self, external_id: str) -> bool:
        return self.participants.filter(user_id=external_id).exists()


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    Stores the pair in canonical order (lower external id first) so that
    "A talks to B" and "B talks to A" map to the same row. The unique
    constraint turns a concurrent duplicate first contact into an
    IntegrityError the service resolves by re-reading.

    Fields:
        conversation: The direct conversation (OneToOne, serves as PK)
        user_lower: User whose external id sorts first
        user_higher: User whose external id sorts second

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower < user_higher): Canonical order, no self-pairs
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User whose external id sorts first in this pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User whose external id sorts second in this pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            # Ensure only one direct conversation exists per user pair
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            # Enforce canonical ordering: lower id first
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(first_id: str, second_id: str) -> tuple[str, str]:
        """Return the two external ids in canonical (lower, higher) order."""
        return (first_id, second_id) if first_id < second_id else (second_id, first_id)


# =============================================================================
# Participant
# =============================================================================


class Participant(models.Model):
    """
    Membership of a user in a conversation.

    Membership is fixed at creation: direct conversations always have the
    two users of the pair, groups have the creator plus selected members.

    Fields:
        conversation: The conversation
        user: The member
        joined_at: When the membership was created
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="chat_participations",
        help_text="Member of the conversation",
    )

    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
        ]
        indexes = [
            # Conversations of a user (sidebar)
            models.Index(
                fields=["user", "conversation"],
                name="chat_part_user_conv_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} in {self.conversation_id}"


# =============================================================================
# Message
# =============================================================================


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Soft Delete Behavior:
        Only the sender can delete. The text and reactions are preserved;
        serializers and the sidebar show "Message deleted" instead, and
        deleted messages no longer count as unread.

    Fields:
        conversation: Conversation the message belongs to
        sender: Author of the message
        text: Message body (never empty)
        created_at: Ordering and unread-comparison key
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="chat_messages",
        help_text="User who sent the message",
    )

    text = models.TextField(
        help_text="Message body",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Message list and latest-message lookups
            models.Index(
                fields=["conversation", "created_at"],
                name="chat_msg_conv_created_idx",
            ),
            # Unread counting
            models.Index(
                fields=["conversation", "is_deleted", "created_at"],
                name="chat_msg_conv_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        preview = self.text[:50] + "..." if len(self.text) > 50 else self.text
        return f"{self.sender_id}: {preview}"

    @property
    def display_text(self) -> str:
        """Text to show to users, with the placeholder for deleted messages."""
        return MESSAGE_CONFIG.DELETED_PLACEHOLDER if self.is_deleted else self.text


class MessageReaction(BaseModel):
    """
    One emoji reaction by one user on one message.

    At most one row exists per (message, user, emoji); toggling the same
    emoji again deletes it.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message being reacted to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="chat_reactions",
        help_text="User who reacted",
    )

    emoji = models.CharField(
        max_length=32,
        help_text="Emoji character or sequence",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_message_user_emoji_reaction",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} reacted {self.emoji} to {self.message_id}"


# =============================================================================
# Typing and read state
# =============================================================================


class TypingState(models.Model):
    """
    Marks a user as composing a message in a conversation.

    The row exists while the user is typing. updated_at is the heartbeat;
    rows older than TYPING_CONFIG.TTL_SECONDS are ignored by reads and
    purged by a periodic task.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="typing_states",
        help_text="Conversation being typed in",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="chat_typing_states",
        help_text="User who is typing",
    )

    updated_at = models.DateTimeField(
        db_index=True,
        help_text="Last typing heartbeat",
    )

    class Meta:
        db_table = "chat_typing_state"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_typing_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} typing in {self.conversation_id}"


class ReadReceipt(models.Model):
    """
    When a user last viewed a conversation.

    last_read_at never moves backwards. Messages created after it (and not
    sent by the user) are unread.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="external_id",
        on_delete=models.CASCADE,
        related_name="chat_read_receipts",
        help_text="Reader",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="read_receipts",
        help_text="Conversation that was read",
    )

    last_read_at = models.DateTimeField(
        help_text="When the user last viewed the conversation",
    )

    class Meta:
        db_table = "chat_read_receipt"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_user_conversation_receipt",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} read {self.conversation_id} at {self.last_read_at}"
