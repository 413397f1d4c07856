"""
Authenticated caller identity.

The identity provider, not this service, owns sign-in. Every request or
websocket connection carries a signed token whose claims describe the
caller. Identity is the object DRF and Channels attach as ``request.user``
and ``scope["user"]``; it exists before the caller has a directory record,
which is what UserDirectoryService.store creates.

Related files:
    - backends.py: Builds an Identity from a validated token
    - services.py: UserDirectoryService keyed by Identity.subject
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """
    Claims of an authenticated caller.

    Attributes:
        subject: Stable identity id (``sub`` claim); the directory key
        name: Display name claim, if the provider sent one
        email: Email claim, if the provider sent one
        picture_url: Avatar URL claim, if the provider sent one
    """

    subject: str
    name: str | None = None
    email: str | None = None
    picture_url: str | None = None

    is_authenticated = True
    is_anonymous = False
    is_active = True
    is_staff = False

    @property
    def pk(self) -> str:
        """Throttles and logs key callers by ``pk``."""
        return self.subject

    @property
    def id(self) -> str:
        return self.subject

    def __str__(self) -> str:
        return self.subject


def get_caller_id(user) -> str | None:
    """
    Return the identity subject of an authenticated caller, else None.

    Accepts anything DRF or Channels may put on a request or scope,
    including AnonymousUser.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    if isinstance(user, Identity):
        return user.subject
    # Session-authenticated staff users browsing the API
    return getattr(user, "external_id", None)
