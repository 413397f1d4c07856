"""
Token authentication against the external identity provider.

ExternalIdentityAuthentication reuses SimpleJWT's header parsing and token
validation (signature, expiry, issuer, audience, JWKS) but does not look
the caller up in the database: it returns an Identity built from claims.
Claim names follow OpenID Connect (sub, name, email, picture).

Configuration lives in settings.SIMPLE_JWT; see config/settings.py.

Usage:
    REST_FRAMEWORK = {
        "DEFAULT_AUTHENTICATION_CLASSES": (
            "authentication.backends.ExternalIdentityAuthentication",
        ),
    }
"""

from __future__ import annotations

import logging

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.settings import api_settings

from authentication.identity import Identity

logger = logging.getLogger(__name__)


class ExternalIdentityAuthentication(JWTAuthentication):
    """
    Authenticate requests with an identity provider token.

    Returns (Identity, validated_token) for a valid bearer token, None when
    no token was sent, and raises InvalidToken for a bad one.
    """

    def get_user(self, validated_token) -> Identity:
        try:
            subject = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError:
            raise InvalidToken("Token contained no recognizable user identification")

        if not subject:
            raise InvalidToken("Token contained an empty user identification")

        return Identity(
            subject=str(subject),
            name=validated_token.get("name") or None,
            email=validated_token.get("email") or None,
            picture_url=validated_token.get("picture") or None,
        )

    def authenticate_token(self, raw_token: str | bytes) -> Identity | None:
        """
        Validate a raw token outside a DRF request.

        Used by the websocket middleware. Returns None instead of raising so
        an invalid token simply leaves the connection anonymous.
        """
        try:
            validated_token = self.get_validated_token(raw_token)
            return self.get_user(validated_token)
        except (InvalidToken, TokenError) as e:
            logger.info(f"Rejected identity token: {e}")
            return None
