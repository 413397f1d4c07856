"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation inspection with participants
- Message moderation (soft delete keeps content, restore undoes it)
"""

from django.contrib import admin

from chat.models import Conversation, Message, MessageReaction, Participant, ReadReceipt
from core.realtime import conversation_group, publish, user_group


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "conversation_type",
        "group_name",
        "created_by",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["conversation_type", "created_at"]
    search_fields = ["group_name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message_at"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline]


class MessageReactionInline(admin.TabularInline):
    model = MessageReaction
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "conversation", "sender", "short_text", "is_deleted", "created_at"]
    list_filter = ["is_deleted", "created_at"]
    search_fields = ["text", "sender__external_id", "sender__name"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["conversation", "sender"]
    inlines = [MessageReactionInline]
    actions = ["soft_delete_messages", "restore_messages"]

    @admin.display(description="Text")
    def short_text(self, obj):
        return obj.text[:80]

    @admin.action(description="Soft delete selected messages")
    def soft_delete_messages(self, request, queryset):
        count = self._moderate(queryset.filter(is_deleted=False), Message.soft_delete)
        self.message_user(request, f"Deleted {count} messages.")

    @admin.action(description="Restore selected messages")
    def restore_messages(self, request, queryset):
        count = self._moderate(queryset.filter(is_deleted=True), Message.restore)
        self.message_user(request, f"Restored {count} messages.")

    def _moderate(self, queryset, apply) -> int:
        """Apply a soft delete state change and refresh live subscribers."""
        count = 0
        conversation_ids = set()
        for message in queryset:
            apply(message)
            conversation_ids.add(message.conversation_id)
            count += 1

        if conversation_ids:
            publish(
                [conversation_group(cid) for cid in conversation_ids], topic="messages"
            )
            member_ids = Participant.objects.filter(
                conversation_id__in=conversation_ids
            ).values_list("user_id", flat=True)
            publish([user_group(uid) for uid in member_ids], topic="sidebar")

        return count


@admin.register(ReadReceipt)
class ReadReceiptAdmin(admin.ModelAdmin):
    list_display = ["user", "conversation", "last_read_at"]
    raw_id_fields = ["user", "conversation"]
