"""
Authentication models.

This module defines the user directory record:
- User: One profile per external identity (name, avatar, online flag)

Identities are issued by an external identity provider. The provider's
subject claim is stored in ``external_id`` and is what every other record
(participants, messages, reactions, receipts) references.

Related files:
    - managers.py: UserManager for identity-based creation
    - identity.py: Identity, the authenticated caller attached to requests
    - services.py: UserDirectoryService business logic
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Directory record for one external identity.

    Fields:
        external_id: Subject claim of the identity provider (unique, immutable)
        name: Display name shown in conversations and typing indicators
        email: Email claim at last sign-in (may be empty)
        image_url: Avatar URL (optional)
        is_online: Presence flag, set by the client and by websocket lifecycle
        last_seen_at: Last presence heartbeat (drives server-side expiry)
        is_active: Whether the account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the directory record was created
        updated_at: When the record was last modified

    Usage:
        user = User.objects.create_user(
            external_id="user_2abc",
            name="Ada Lovelace",
            email="ada@example.com",
        )
    """

    external_id = models.CharField(
        max_length=255,
        unique=True,
        editable=False,
        help_text="Identity provider subject (unique, never changes)",
    )

    name = models.CharField(
        max_length=255,
        default="Anonymous",
        help_text="Display name",
    )

    email = models.EmailField(
        max_length=254,
        blank=True,
        default="",
        help_text="Email address reported by the identity provider",
    )

    image_url = models.URLField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Avatar URL (empty when the provider has none)",
    )

    is_online = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the user currently has the app open",
    )

    last_seen_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Last presence heartbeat from this user",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the directory record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the record was last modified",
    )

    USERNAME_FIELD = "external_id"
    REQUIRED_FIELDS = ["name"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["name", "external_id"]

    def __str__(self):
        return f"{self.name} ({self.external_id})"

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.external_id
