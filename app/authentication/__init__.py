"""
Authentication application.

This app owns the user directory and the bridge to the external identity
provider that issues caller tokens.

Key components:
    - User model: Directory record keyed by identity subject
    - Identity: Authenticated caller built from token claims
    - ExternalIdentityAuthentication: DRF authentication class
    - UserDirectoryService: Store, list, presence

Usage:
    from authentication.models import User
    from authentication.services import UserDirectoryService
"""
