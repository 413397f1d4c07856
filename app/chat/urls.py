"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/direct/                   POST
        /conversations/group/                    POST
        /conversations/{id}/messages/            GET, POST
        /conversations/{id}/typing/              GET, POST
        /conversations/{id}/read/                POST

    Messages:
        /messages/{id}/                          DELETE
        /messages/{id}/reactions/toggle/         POST

    Sidebar:
        /sidebar/                                GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import path

from chat.views import (
    ConversationMessagesView,
    DirectConversationView,
    GroupConversationView,
    MarkReadView,
    MessageDetailView,
    MessageReactionToggleView,
    SidebarView,
    TypingView,
)

app_name = "chat"

urlpatterns = [
    # Conversation creation
    path(
        "conversations/direct/",
        DirectConversationView.as_view(),
        name="conversation-direct",
    ),
    path(
        "conversations/group/",
        GroupConversationView.as_view(),
        name="conversation-group",
    ),
    # Per-conversation resources
    path(
        "conversations/<int:conversation_pk>/messages/",
        ConversationMessagesView.as_view(),
        name="conversation-message-list",
    ),
    path(
        "conversations/<int:conversation_pk>/typing/",
        TypingView.as_view(),
        name="conversation-typing",
    ),
    path(
        "conversations/<int:conversation_pk>/read/",
        MarkReadView.as_view(),
        name="conversation-read",
    ),
    # Messages
    path("messages/<int:pk>/", MessageDetailView.as_view(), name="message-detail"),
    path(
        "messages/<int:pk>/reactions/toggle/",
        MessageReactionToggleView.as_view(),
        name="message-reaction-toggle",
    ),
    path("sidebar/", SidebarView.as_view(), name="sidebar"),
]
