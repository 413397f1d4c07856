"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/live/ - Live query subscriptions for the connected user

Authentication:
    Identity token should be passed as query parameter: ?token=<jwt>
    The JWTAuthMiddleware validates it and attaches the caller to the
    consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/live/", consumers.LiveQueryConsumer.as_asgi()),
]
