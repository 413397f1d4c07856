"""
Custom user manager for identity-based users.

Directory users are created from identity provider claims and never log in
with a password. Staff accounts for the Django admin are the exception and
are created with createsuperuser.

Related files:
    - models.py: User model that uses this manager
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Manager for User keyed by external identity id.

    Usage:
        user = User.objects.create_user(external_id="user_2abc", name="Ada")
        admin = User.objects.create_superuser(
            external_id="ops", name="Ops", password="secret"
        )
    """

    def create_user(self, external_id, password=None, **extra_fields):
        """
        Create and save a directory user.

        Args:
            external_id: Identity provider subject (required)
            password: Only used for staff accounts; directory users get an
                unusable password
            **extra_fields: name, email, image_url, is_online, ...

        Raises:
            ValueError: If external_id is empty
        """
        if not external_id:
            raise ValueError("The external_id field must be set")

        if extra_fields.get("email"):
            extra_fields["email"] = self.normalize_email(extra_fields["email"])

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(external_id=external_id, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, external_id, password=None, **extra_fields):
        """Create a staff superuser for the Django admin."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(external_id, password, **extra_fields)
