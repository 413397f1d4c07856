"""
Django admin configuration for the user directory.

Related files:
    - models.py: User model
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model.

    Directory records are created by sign-in through the identity provider,
    so the admin only inspects and deactivates them.
    """

    list_display = (
        "external_id",
        "name",
        "email",
        "is_online",
        "last_seen_at",
        "is_active",
        "is_staff",
    )
    list_filter = (
        "is_online",
        "is_active",
        "is_staff",
        "is_superuser",
    )
    search_fields = ("external_id", "name", "email")
    ordering = ("name",)

    fieldsets = (
        (None, {"fields": ("external_id", "name", "email", "image_url")}),
        ("Presence", {"fields": ("is_online", "last_seen_at")}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "updated_at", "last_login")},
        ),
    )
    readonly_fields = ("external_id", "date_joined", "updated_at", "last_login")
    filter_horizontal = ("groups", "user_permissions")

    def has_add_permission(self, request):
        return False
