"""
WebSocket authentication middleware.

Provides identity-token authentication for WebSocket connections.
Supports token via query string or subprotocol.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - authentication/backends.py: Token validation shared with the REST API
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/live/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from authentication.backends import ExternalIdentityAuthentication

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts the identity token from query string or subprotocol,
    validates it, and attaches the caller Identity to the scope.
    Missing or invalid tokens leave an AnonymousUser; the consumer
    decides how to reject.

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    """

    authentication_class = ExternalIdentityAuthentication

    async def __call__(self, scope, receive, send):
        """
        Process WebSocket connection.

        Authenticates the caller and adds it to the scope before passing
        to the inner application.
        """
        scope = dict(scope)

        token = self._get_token_from_query(scope) or self._get_token_from_subprotocol(
            scope
        )

        identity = None
        if token:
            # Signature and claim checks only; no database access
            identity = self.authentication_class().authenticate_token(token)

        scope["user"] = identity or AnonymousUser()

        return await super().__call__(scope, receive, send)

    @staticmethod
    def _get_token_from_query(scope) -> str | None:
        query_string = scope.get("query_string", b"").decode("latin-1")
        values = parse_qs(query_string).get("token")
        return values[0] if values else None

    @staticmethod
    def _get_token_from_subprotocol(scope) -> str | None:
        subprotocols = scope.get("subprotocols") or []
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None
