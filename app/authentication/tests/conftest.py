"""
Test configuration and fixtures for authentication tests.

This module provides:
- User fixtures (stored directory records)
- Identity fixtures (callers with and without a record)
- API client helpers for authenticated requests

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get('/api/v1/users/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import IdentityFactory, UserFactory, identity_for


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a stored, offline directory user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Create a second directory user."""
    return UserFactory()


@pytest.fixture
def online_user(db):
    """Create a user who is currently online."""
    return UserFactory(is_online=True)


# =============================================================================
# Identity Fixtures
# =============================================================================


@pytest.fixture
def identity(user):
    """Identity of the stored ``user`` fixture."""
    return identity_for(user)


@pytest.fixture
def new_identity():
    """Identity of a caller who has never been stored."""
    return IdentityFactory()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(identity):
    """API client authenticated as ``user``."""
    client = APIClient()
    client.force_authenticate(user=identity)
    return client


@pytest.fixture
def new_identity_client(new_identity):
    """API client authenticated as a caller with no directory record."""
    client = APIClient()
    client.force_authenticate(user=new_identity)
    return client
