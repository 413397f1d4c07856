"""
Serializers for chat API.

This module provides serializers for the chat system:
- Request serializers for each mutation
- Message serializer with reaction groups and soft-delete handling
- Sidebar entry serializer

Serializer Hierarchy:
    DirectConversationCreateSerializer: Get-or-create direct conversation
    GroupConversationCreateSerializer: New group
    ConversationIdSerializer: {"conversation_id"} responses

    MessageSerializer: Message with sender name, display text and reactions
    MessageCreateSerializer: Send new message
    ReactionToggleSerializer / ReactionToggleResponseSerializer
    TypingSetSerializer: Typing on/off

    SidebarEntrySerializer / MessagePreviewSerializer: Sidebar data

Design Decisions:
    - Read and write serializers are separate for clarity
    - Soft-deleted message text is replaced with "Message deleted"
    - Users are identified by their external id everywhere
    - Length limits live in the services so they stay configurable; the
      request serializers only check shape
"""

from __future__ import annotations

from rest_framework import serializers

from chat.models import Message
from chat.services import ReactionService


# =============================================================================
# Conversation Serializers
# =============================================================================


class DirectConversationCreateSerializer(serializers.Serializer):
    """Request body for getting or creating a direct conversation."""

    other_user_id = serializers.CharField(
        max_length=255,
        help_text="External id of the other user",
    )


class GroupConversationCreateSerializer(serializers.Serializer):
    """Request body for creating a group conversation."""

    participant_ids = serializers.ListField(
        child=serializers.CharField(max_length=255),
        allow_empty=True,
        help_text="External ids of the members (the caller is added automatically)",
    )
    group_name = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Name of the group",
    )


class ConversationIdSerializer(serializers.Serializer):
    """Response for conversation creation endpoints."""

    conversation_id = serializers.IntegerField()


# =============================================================================
# Message Serializers
# =============================================================================


class ReactionGroupSerializer(serializers.Serializer):
    """Reactions of one emoji on a message."""

    emoji = serializers.CharField()
    count = serializers.IntegerField()
    user_ids = serializers.ListField(child=serializers.CharField())
    reacted_by_me = serializers.BooleanField()


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for message lists.

    Expects ``caller_id`` in the serializer context to flag the caller's
    own reactions.
    """

    sender_id = serializers.CharField(read_only=True)
    sender_name = serializers.CharField(source="sender.name", read_only=True)
    text = serializers.CharField(
        source="display_text",
        read_only=True,
        help_text="Message text (replaced if deleted)",
    )
    reactions = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender_id",
            "sender_name",
            "text",
            "is_deleted",
            "reactions",
            "created_at",
        ]
        read_only_fields = fields

    def get_reactions(self, obj: Message) -> list[dict]:
        return ReactionService.group_reactions(
            obj.reactions.all(), self.context.get("caller_id")
        )


class MessageCreateSerializer(serializers.Serializer):
    """Serializer for sending messages."""

    text = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Message text",
    )


class ReactionToggleSerializer(serializers.Serializer):
    """Request body for toggling a reaction."""

    emoji = serializers.CharField(
        allow_blank=True,
        help_text="Emoji to add or remove",
    )


class ReactionToggleResponseSerializer(serializers.Serializer):
    added = serializers.BooleanField(
        help_text="True if the reaction was added, False if it was removed"
    )


# =============================================================================
# Typing Serializers
# =============================================================================


class TypingSetSerializer(serializers.Serializer):
    """Request body for setting typing state."""

    is_typing = serializers.BooleanField()


# =============================================================================
# Sidebar Serializers
# =============================================================================


class MessagePreviewSerializer(serializers.Serializer):
    """Last message of a sidebar entry."""

    id = serializers.IntegerField()
    sender_id = serializers.CharField()
    text = serializers.CharField(help_text="Message text (replaced if deleted)")
    is_deleted = serializers.BooleanField()
    created_at = serializers.DateTimeField()


class SidebarEntrySerializer(serializers.Serializer):
    """
    One sidebar row: another user (direct) or a group.

    Entry ids are namespaced: "user:<external id>" for direct entries and
    "group:<conversation id>" for groups. Direct entries exist for every
    other user, with conversation_id null until the first contact.
    member_count is only set for groups, is_online only for direct entries.
    """

    id = serializers.CharField()
    is_group = serializers.BooleanField()
    conversation_id = serializers.IntegerField(allow_null=True)
    other_user_id = serializers.CharField(allow_null=True)
    name = serializers.CharField()
    image_url = serializers.CharField(allow_null=True)
    is_online = serializers.BooleanField(allow_null=True)
    last_message = MessagePreviewSerializer(allow_null=True)
    unread_count = serializers.IntegerField()
    member_count = serializers.IntegerField(allow_null=True)
