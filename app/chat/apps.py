"""
Chat application configuration.

This app provides the chat system with:
- Direct (1:1) and named group conversations
- Soft-deleted messages with emoji reactions
- Typing indicators with server-side expiry
- Read receipts, unread counts and the sidebar
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
