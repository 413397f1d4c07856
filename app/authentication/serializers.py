"""
Serializers for the user directory.

Related files:
    - models.py: User model
    - views.py: Views that use these serializers

The public id of a user is their identity subject (``external_id``); the
database primary key never leaves the server.
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Used for the directory listing, the store response and anywhere a user
    is embedded in another payload.
    """

    id = serializers.CharField(source="external_id", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "image_url",
            "is_online",
            "last_seen_at",
        ]
        read_only_fields = fields


class UserStatusSerializer(serializers.Serializer):
    """Request body for setting the caller's online flag."""

    is_online = serializers.BooleanField()
