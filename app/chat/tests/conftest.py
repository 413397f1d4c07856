"""
Test configuration and fixtures for chat tests.

This module provides:
- Named directory users (alice, bob, carol)
- Direct and group conversations between them
- API clients authenticated as each user

Usage:
    def test_example(alice_client, direct_conversation):
        url = f"/api/v1/chat/conversations/{direct_conversation.id}/messages/"
        response = alice_client.get(url)
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_for
from chat.services import ConversationService
from chat.tests.factories import GroupConversationFactory


def client_for(user) -> APIClient:
    """API client authenticated with the identity of ``user``."""
    client = APIClient()
    client.force_authenticate(user=identity_for(user))
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(external_id="user_alice", name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(external_id="user_bob", name="Bob")


@pytest.fixture
def carol(db):
    return UserFactory(external_id="user_carol", name="Carol")


@pytest.fixture
def outsider(db):
    """A directory user who belongs to none of the fixture conversations."""
    return UserFactory(external_id="user_zed", name="Zed")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct_conversation(alice, bob):
    """The direct conversation between alice and bob."""
    return ConversationService.get_or_create_direct(
        alice.external_id, bob.external_id
    ).data


@pytest.fixture
def group_conversation(alice, bob, carol):
    """Group "Team" created by alice with bob and carol."""
    return GroupConversationFactory(
        created_by=alice, group_name="Team", members=[bob, carol]
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def alice_client(alice):
    return client_for(alice)


@pytest.fixture
def bob_client(bob):
    return client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return client_for(outsider)
