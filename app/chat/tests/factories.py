"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Conversation: Group conversations with members
- Participant: User membership in conversations
- Message: Text messages
- MessageReaction, TypingState, ReadReceipt: Per-user state

Direct conversations are created through
ConversationService.get_or_create_direct (see the direct_conversation
fixture) so the pair row and participants always match.

Usage:
    from chat.tests.factories import GroupConversationFactory, MessageFactory

    # Group with creator and two members
    group = GroupConversationFactory(members=[alice, bob, carol])

    # A message in that group
    message = MessageFactory(conversation=group, sender=alice)
"""

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from chat.models import (
    Conversation,
    ConversationType,
    Message,
    MessageReaction,
    Participant,
    ReadReceipt,
    TypingState,
)


class GroupConversationFactory(factory.django.DjangoModelFactory):
    """
    Factory for group conversations.

    Examples:
        # Group whose only member is its creator
        group = GroupConversationFactory()

        # Group with explicit members (creator included automatically)
        group = GroupConversationFactory(members=[bob, carol])
    """

    class Meta:
        model = Conversation
        skip_postgeneration_save = True

    conversation_type = ConversationType.GROUP
    group_name = factory.Sequence(lambda n: f"Group {n}")
    created_by = factory.SubFactory(UserFactory)

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        """Add the creator and any extra members as participants."""
        if not create:
            return

        users = [self.created_by, *(extracted or [])]
        seen = set()
        for user in users:
            if user.external_id in seen:
                continue
            seen.add(user.external_id)
            Participant.objects.create(conversation=self, user=user)


class ParticipantFactory(factory.django.DjangoModelFactory):
    """Factory for Participant model."""

    class Meta:
        model = Participant

    conversation = factory.SubFactory(GroupConversationFactory)
    user = factory.SubFactory(UserFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for Message model.

    Does not touch conversation.last_message_at; use MessageService.send
    where the sidebar ordering matters.
    """

    class Meta:
        model = Message

    conversation = factory.SubFactory(GroupConversationFactory)
    sender = factory.SubFactory(UserFactory)
    text = factory.Faker("sentence")


class MessageReactionFactory(factory.django.DjangoModelFactory):
    """Factory for MessageReaction model."""

    class Meta:
        model = MessageReaction

    message = factory.SubFactory(MessageFactory)
    user = factory.SubFactory(UserFactory)
    emoji = "👍"


class TypingStateFactory(factory.django.DjangoModelFactory):
    """Factory for TypingState model (fresh heartbeat by default)."""

    class Meta:
        model = TypingState

    conversation = factory.SubFactory(GroupConversationFactory)
    user = factory.SubFactory(UserFactory)
    updated_at = factory.LazyFunction(timezone.now)


class ReadReceiptFactory(factory.django.DjangoModelFactory):
    """Factory for ReadReceipt model."""

    class Meta:
        model = ReadReceipt

    user = factory.SubFactory(UserFactory)
    conversation = factory.SubFactory(GroupConversationFactory)
    last_read_at = factory.LazyFunction(timezone.now)
