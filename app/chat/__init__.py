"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group)
- Message sending, soft deletion and reactions
- Typing indicators and read receipts
- The sidebar with unread counts
- Live query subscriptions over WebSocket

Related apps:
    - authentication: User directory and caller identity

WebSocket Support:
    Uses Django Channels for live query delivery.
    See consumers.py for the WebSocket handler.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_direct(caller_id, other_id)
    MessageService.send(caller_id, result.data.id, "Hello!")
"""
