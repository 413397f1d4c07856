"""
Tests for the chat service layer.

This module tests:
- ConversationService: direct get-or-create, group creation
- MessageService: send, soft delete, list
- ReactionService: toggle and grouping
- TypingService: typing state with expiry
- ReadReceiptService: monotonic last-read timestamps
- SidebarService: entries, unread counts and ordering

Test Organization:
    - Each service method has its own test class
    - Each test validates ONE specific behavior
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable behavior, not implementation details:
    - ServiceResult success/failure states and error codes
    - Database state changes
    - What each user sees in their sidebar
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from authentication.models import User
from authentication.tests.factories import UserFactory
from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG
from chat.models import (
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageReaction,
    Participant,
    ReadReceipt,
    TypingState,
)
from chat.services import (
    ConversationService,
    MessageService,
    ReactionService,
    ReadReceiptService,
    SidebarService,
    TypingService,
)
from chat.tests.factories import (
    GroupConversationFactory,
    MessageFactory,
    MessageReactionFactory,
    ReadReceiptFactory,
    TypingStateFactory,
)
from core.realtime import conversation_group, user_group


def _entry(entries, entry_id):
    return next(entry for entry in entries if entry["id"] == entry_id)


# =============================================================================
# ConversationService.get_or_create_direct
# =============================================================================


class TestGetOrCreateDirect:
    """
    Tests for ConversationService.get_or_create_direct().

    Verifies:
    - Creating new direct conversations
    - Returning the existing conversation for the same pair, from either side
    - Preventing self-conversations and unknown users
    """

    def test_creates_direct_conversation_with_two_participants(self, alice, bob):
        """
        First contact creates the conversation, pair row and memberships.

        Why it matters: This is the primary happy path for starting a DM.
        """
        result = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        )

        assert result.success is True
        conversation = result.data
        assert conversation.conversation_type == ConversationType.DIRECT
        assert conversation.group_name == ""
        assert set(
            conversation.participants.values_list("user_id", flat=True)
        ) == {alice.external_id, bob.external_id}
        pair = DirectConversationPair.objects.get(conversation=conversation)
        assert (pair.user_lower_id, pair.user_higher_id) == (
            alice.external_id,
            bob.external_id,
        )

    def test_repeated_calls_return_same_conversation(self, alice, bob):
        """
        Calling again returns the existing conversation, not a new one.

        Why it matters: users must always land in the same conversation.
        """
        first = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        )
        second = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        )

        assert first.data.id == second.data.id
        assert (
            Conversation.objects.filter(
                conversation_type=ConversationType.DIRECT
            ).count()
            == 1
        )

    def test_either_side_gets_same_conversation(self, alice, bob):
        """
        get_or_create(A, B) and get_or_create(B, A) agree.

        Why it matters: whoever writes first, both see one chat.
        """
        from_alice = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        )
        from_bob = ConversationService.get_or_create_direct(
            bob.external_id, alice.external_id
        )

        assert from_alice.data.id == from_bob.data.id

    def test_fails_for_same_user(self, alice):
        result = ConversationService.get_or_create_direct(
            alice.external_id, alice.external_id
        )

        assert result.success is False
        assert result.error_code == "SAME_USER"
        assert Conversation.objects.count() == 0

    def test_fails_for_unknown_other_user(self, alice):
        result = ConversationService.get_or_create_direct(
            alice.external_id, "user_missing"
        )

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"

    def test_fails_when_caller_has_no_record(self, bob):
        result = ConversationService.get_or_create_direct("user_missing", bob.external_id)

        assert result.error_code == "USER_NOT_FOUND"

    def test_lost_race_returns_winner(self, direct_conversation, alice, bob):
        """
        If another request created the pair between lookup and insert, the
        unique constraint fires and the existing conversation is returned.

        Why it matters: simultaneous first messages must converge on one
        conversation instead of erroring.
        """
        with patch.object(
            ConversationService,
            "_find_direct",
            side_effect=[None, direct_conversation],
        ):
            result = ConversationService.get_or_create_direct(
                bob.external_id, alice.external_id
            )

        assert result.success is True
        assert result.data.id == direct_conversation.id
        assert (
            Conversation.objects.filter(
                conversation_type=ConversationType.DIRECT
            ).count()
            == 1
        )


# =============================================================================
# ConversationService.create_group
# =============================================================================


class TestCreateGroup:
    """Tests for ConversationService.create_group()."""

    def test_creates_group_with_caller_and_members(self, alice, bob, carol):
        """
        Caller plus two members gives a three-member named group.

        Why it matters: the creator must always be a member of their group.
        """
        result = ConversationService.create_group(
            alice.external_id, [bob.external_id, carol.external_id], "Team"
        )

        assert result.success is True
        group = result.data
        assert group.conversation_type == ConversationType.GROUP
        assert group.group_name == "Team"
        assert group.created_by_id == alice.external_id
        assert list(
            group.participants.order_by("id").values_list("user_id", flat=True)
        ) == [alice.external_id, bob.external_id, carol.external_id]

    def test_duplicate_members_and_caller_are_collapsed(self, alice, bob):
        result = ConversationService.create_group(
            alice.external_id,
            [bob.external_id, alice.external_id, bob.external_id],
            "Pair",
        )

        assert result.success is True
        assert result.data.participants.count() == 2

    def test_name_is_trimmed(self, alice, bob):
        result = ConversationService.create_group(
            alice.external_id, [bob.external_id], "  Team  "
        )

        assert result.data.group_name == "Team"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_fails(self, alice, bob, name):
        result = ConversationService.create_group(
            alice.external_id, [bob.external_id], name
        )

        assert result.success is False
        assert result.error_code == "GROUP_NAME_REQUIRED"
        assert Conversation.objects.count() == 0

    def test_overlong_name_fails(self, alice, bob):
        result = ConversationService.create_group(
            alice.external_id,
            [bob.external_id],
            "x" * (GROUP_CONFIG.MAX_NAME_LENGTH + 1),
        )

        assert result.error_code == "INVALID_GROUP_NAME"

    def test_no_members_fails(self, alice):
        """
        A group needs at least one member besides the creator.

        Why it matters: empty member lists are rejected server-side, not
        only by the client.
        """
        result = ConversationService.create_group(alice.external_id, [], "Solo")

        assert result.success is False
        assert result.error_code == "MEMBERS_REQUIRED"

    def test_only_self_as_member_fails(self, alice):
        result = ConversationService.create_group(
            alice.external_id, [alice.external_id], "Solo"
        )

        assert result.error_code == "MEMBERS_REQUIRED"

    def test_too_many_members_fails(self, alice, bob, carol):
        with patch.object(GROUP_CONFIG, "MAX_SIZE", 2):
            result = ConversationService.create_group(
                alice.external_id, [bob.external_id, carol.external_id], "Big"
            )

        assert result.success is False
        assert result.error_code == "GROUP_TOO_LARGE"

    def test_unknown_member_fails_and_lists_missing_ids(self, alice, bob):
        result = ConversationService.create_group(
            alice.external_id, [bob.external_id, "user_ghost"], "Team"
        )

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"
        assert result.errors == {"participant_ids": ["user_ghost"]}
        assert Conversation.objects.count() == 0


# =============================================================================
# MessageService.send
# =============================================================================


class TestSendMessage:
    """Tests for MessageService.send()."""

    def test_creates_message_and_updates_last_message_at(
        self, direct_conversation, alice
    ):
        result = MessageService.send(alice.external_id, direct_conversation.id, "hi")

        assert result.success is True
        message = result.data
        assert message.text == "hi"
        assert message.sender_id == alice.external_id
        direct_conversation.refresh_from_db()
        assert direct_conversation.last_message_at == message.created_at

    def test_text_is_stored_verbatim(self, direct_conversation, alice):
        result = MessageService.send(
            alice.external_id, direct_conversation.id, "  spaced out  "
        )

        assert result.data.text == "  spaced out  "

    def test_clears_senders_typing_state(self, direct_conversation, alice, bob):
        """
        Sending a message removes the sender's typing indicator.

        Why it matters: "Alice is typing" must not linger after her message
        arrives.
        """
        TypingStateFactory(conversation=direct_conversation, user=alice)
        TypingStateFactory(conversation=direct_conversation, user=bob)

        MessageService.send(alice.external_id, direct_conversation.id, "done")

        assert list(
            TypingState.objects.filter(conversation=direct_conversation).values_list(
                "user_id", flat=True
            )
        ) == [bob.external_id]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_fails(self, direct_conversation, alice, text):
        result = MessageService.send(alice.external_id, direct_conversation.id, text)

        assert result.success is False
        assert result.error_code == "EMPTY_CONTENT"
        assert Message.objects.count() == 0

    def test_overlong_text_fails(self, direct_conversation, alice):
        result = MessageService.send(
            alice.external_id,
            direct_conversation.id,
            "x" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1),
        )

        assert result.error_code == "CONTENT_TOO_LONG"

    def test_non_participant_fails(self, direct_conversation, outsider):
        """
        Only members can post.

        Why it matters: knowing a conversation id must not grant write access.
        """
        result = MessageService.send(outsider.external_id, direct_conversation.id, "hi")

        assert result.success is False
        assert result.error_code == "NOT_PARTICIPANT"
        assert Message.objects.count() == 0

    def test_unknown_conversation_fails(self, alice):
        result = MessageService.send(alice.external_id, 999999, "hi")

        assert result.error_code == "CONVERSATION_NOT_FOUND"

    def test_publishes_message_and_sidebar_invalidations(
        self, direct_conversation, alice, bob
    ):
        with patch("chat.services.publish") as publish:
            MessageService.send(alice.external_id, direct_conversation.id, "hi")

        calls = [(tuple(c.args[0]), c.kwargs["topic"]) for c in publish.call_args_list]
        assert ((conversation_group(direct_conversation.id),), "messages") in calls
        sidebar_groups = next(groups for groups, topic in calls if topic == "sidebar")
        assert set(sidebar_groups) == {
            user_group(alice.external_id),
            user_group(bob.external_id),
        }


# =============================================================================
# MessageService.remove
# =============================================================================


class TestRemoveMessage:
    """Tests for MessageService.remove()."""

    def test_sender_can_soft_delete(self, direct_conversation, alice):
        message = MessageService.send(
            alice.external_id, direct_conversation.id, "oops"
        ).data

        result = MessageService.remove(alice.external_id, message.id)

        assert result.success is True
        message.refresh_from_db()
        assert message.is_deleted is True
        assert message.deleted_at is not None
        assert message.text == "oops"

    def test_reactions_survive_deletion(self, direct_conversation, alice, bob):
        message = MessageFactory(conversation=direct_conversation, sender=alice)
        MessageReactionFactory(message=message, user=bob)

        MessageService.remove(alice.external_id, message.id)

        assert message.reactions.count() == 1

    def test_other_user_cannot_delete(self, direct_conversation, alice, bob):
        """
        Only the sender may delete a message.

        Why it matters: participants must not erase each other's words.
        """
        message = MessageFactory(conversation=direct_conversation, sender=alice)

        result = MessageService.remove(bob.external_id, message.id)

        assert result.success is False
        assert result.error_code == "PERMISSION_DENIED"
        message.refresh_from_db()
        assert message.is_deleted is False

    def test_deleting_twice_is_a_no_op(self, direct_conversation, alice):
        message = MessageFactory(conversation=direct_conversation, sender=alice)
        MessageService.remove(alice.external_id, message.id)
        message.refresh_from_db()
        deleted_at = message.deleted_at

        result = MessageService.remove(alice.external_id, message.id)

        assert result.success is True
        message.refresh_from_db()
        assert message.deleted_at == deleted_at

    def test_unknown_message_fails(self, alice):
        result = MessageService.remove(alice.external_id, 999999)

        assert result.error_code == "MESSAGE_NOT_FOUND"


# =============================================================================
# MessageService.list_messages
# =============================================================================


class TestListMessages:
    """Tests for MessageService.list_messages()."""

    def test_returns_messages_in_creation_order(self, direct_conversation, alice, bob):
        first = MessageService.send(alice.external_id, direct_conversation.id, "1").data
        second = MessageService.send(bob.external_id, direct_conversation.id, "2").data
        third = MessageService.send(alice.external_id, direct_conversation.id, "3").data

        result = MessageService.list_messages(bob.external_id, direct_conversation.id)

        assert result.success is True
        assert [m.id for m in result.data] == [first.id, second.id, third.id]

    def test_includes_deleted_messages(self, direct_conversation, alice):
        message = MessageFactory(conversation=direct_conversation, sender=alice)
        message.soft_delete()

        result = MessageService.list_messages(alice.external_id, direct_conversation.id)

        assert [m.display_text for m in result.data] == ["Message deleted"]

    def test_excludes_other_conversations(
        self, direct_conversation, group_conversation, alice
    ):
        MessageFactory(conversation=group_conversation, sender=alice)

        result = MessageService.list_messages(alice.external_id, direct_conversation.id)

        assert result.data == []

    def test_non_participant_fails(self, direct_conversation, outsider):
        result = MessageService.list_messages(
            outsider.external_id, direct_conversation.id
        )

        assert result.success is False
        assert result.error_code == "NOT_PARTICIPANT"


# =============================================================================
# ReactionService
# =============================================================================


class TestToggleReaction:
    """Tests for ReactionService.toggle_reaction()."""

    @pytest.fixture
    def message(self, direct_conversation, alice):
        return MessageFactory(conversation=direct_conversation, sender=alice)

    def test_first_toggle_adds(self, message, bob):
        result = ReactionService.toggle_reaction(bob.external_id, message.id, "👍")

        assert result.success is True
        assert result.data == {"added": True}
        assert MessageReaction.objects.filter(
            message=message, user_id=bob.external_id, emoji="👍"
        ).exists()

    def test_toggling_twice_restores_original_state(self, message, bob):
        """
        Toggle is an involution: twice is the same as never.

        Why it matters: double taps must not leave stray reactions.
        """
        ReactionService.toggle_reaction(bob.external_id, message.id, "👍")
        result = ReactionService.toggle_reaction(bob.external_id, message.id, "👍")

        assert result.data == {"added": False}
        assert MessageReaction.objects.count() == 0

    def test_emojis_toggle_independently(self, message, bob):
        ReactionService.toggle_reaction(bob.external_id, message.id, "👍")
        ReactionService.toggle_reaction(bob.external_id, message.id, "🎉")
        ReactionService.toggle_reaction(bob.external_id, message.id, "👍")

        assert list(message.reactions.values_list("emoji", flat=True)) == ["🎉"]

    def test_surrounding_whitespace_is_ignored(self, message, bob):
        ReactionService.toggle_reaction(bob.external_id, message.id, " 👍 ")

        assert MessageReaction.objects.get().emoji == "👍"

    @pytest.mark.parametrize("emoji", ["", "   "])
    def test_blank_emoji_fails(self, message, bob, emoji):
        result = ReactionService.toggle_reaction(bob.external_id, message.id, emoji)

        assert result.error_code == "INVALID_EMOJI"

    def test_overlong_emoji_fails(self, message, bob):
        result = ReactionService.toggle_reaction(bob.external_id, message.id, "x" * 33)

        assert result.error_code == "INVALID_EMOJI"

    def test_deleted_message_fails(self, message, alice, bob):
        message.soft_delete()

        result = ReactionService.toggle_reaction(bob.external_id, message.id, "👍")

        assert result.error_code == "MESSAGE_DELETED"

    def test_non_participant_fails(self, message, outsider):
        result = ReactionService.toggle_reaction(outsider.external_id, message.id, "👍")

        assert result.error_code == "NOT_PARTICIPANT"
        assert MessageReaction.objects.count() == 0

    def test_unknown_message_fails(self, bob):
        result = ReactionService.toggle_reaction(bob.external_id, 999999, "👍")

        assert result.error_code == "MESSAGE_NOT_FOUND"


class TestGroupReactions:
    """Tests for ReactionService.group_reactions()."""

    def test_groups_by_emoji_in_first_seen_order(self, group_conversation, alice, bob, carol):
        """
        Counts come from rows; order follows each emoji's first reaction.

        Why it matters: the reaction bar must not reshuffle on every update.
        """
        message = MessageFactory(conversation=group_conversation, sender=alice)
        MessageReactionFactory(message=message, user=bob, emoji="🎉")
        MessageReactionFactory(message=message, user=alice, emoji="👍")
        MessageReactionFactory(message=message, user=carol, emoji="🎉")

        groups = ReactionService.group_reactions(
            message.reactions.order_by("created_at", "id"), alice.external_id
        )

        assert groups == [
            {
                "emoji": "🎉",
                "count": 2,
                "user_ids": [bob.external_id, carol.external_id],
                "reacted_by_me": False,
            },
            {
                "emoji": "👍",
                "count": 1,
                "user_ids": [alice.external_id],
                "reacted_by_me": True,
            },
        ]

    def test_empty(self):
        assert ReactionService.group_reactions([], "anyone") == []


# =============================================================================
# TypingService
# =============================================================================


class TestSetTyping:
    """Tests for TypingService.set_typing()."""

    def test_true_creates_state(self, direct_conversation, alice):
        result = TypingService.set_typing(alice.external_id, direct_conversation.id, True)

        assert result.success is True
        assert TypingState.objects.filter(
            conversation=direct_conversation, user_id=alice.external_id
        ).exists()

    def test_true_again_refreshes_heartbeat(self, direct_conversation, alice):
        """
        Repeated typing=True keeps a single row and moves its heartbeat.

        Why it matters: keystroke heartbeats must not pile up rows.
        """
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(alice.external_id, direct_conversation.id, True)
        with freeze_time("2026-01-01 12:00:03"):
            TypingService.set_typing(alice.external_id, direct_conversation.id, True)

        state = TypingState.objects.get()
        assert state.updated_at == datetime(2026, 1, 1, 12, 0, 3, tzinfo=dt_timezone.utc)

    def test_false_removes_state(self, direct_conversation, alice):
        TypingService.set_typing(alice.external_id, direct_conversation.id, True)

        TypingService.set_typing(alice.external_id, direct_conversation.id, False)

        assert TypingState.objects.count() == 0

    def test_false_without_state_is_a_no_op(self, direct_conversation, alice):
        result = TypingService.set_typing(
            alice.external_id, direct_conversation.id, False
        )

        assert result.success is True

    def test_unknown_conversation_is_ignored(self, alice):
        result = TypingService.set_typing(alice.external_id, 999999, True)

        assert result.success is True
        assert TypingState.objects.count() == 0

    def test_non_participant_fails(self, direct_conversation, outsider):
        result = TypingService.set_typing(
            outsider.external_id, direct_conversation.id, True
        )

        assert result.error_code == "NOT_PARTICIPANT"
        assert TypingState.objects.count() == 0


class TestGetActiveTyping:
    """Tests for TypingService.get_active()."""

    def test_lists_other_typing_users_by_name(self, group_conversation, alice, bob, carol):
        TypingService.set_typing(bob.external_id, group_conversation.id, True)
        TypingService.set_typing(alice.external_id, group_conversation.id, True)

        result = TypingService.get_active(alice.external_id, group_conversation.id)

        assert result.success is True
        assert result.data == ["Bob"]

    def test_expired_state_is_not_reported(self, direct_conversation, alice, bob):
        """
        A typing state older than the TTL is invisible even before purge.

        Why it matters: a client that crashed mid-typing must not show
        "Bob is typing" forever.
        """
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(bob.external_id, direct_conversation.id, True)

        with freeze_time("2026-01-01 12:00:04"):
            assert TypingService.get_active(
                alice.external_id, direct_conversation.id
            ).data == ["Bob"]

        with freeze_time("2026-01-01 12:00:06"):
            assert (
                TypingService.get_active(alice.external_id, direct_conversation.id).data
                == []
            )

    def test_nameless_user_is_someone(self, direct_conversation, alice, bob):
        User.objects.filter(pk=bob.pk).update(name="")
        TypingService.set_typing(bob.external_id, direct_conversation.id, True)

        result = TypingService.get_active(alice.external_id, direct_conversation.id)

        assert result.data == ["Someone"]

    def test_non_participant_fails(self, direct_conversation, outsider):
        result = TypingService.get_active(outsider.external_id, direct_conversation.id)

        assert result.error_code == "NOT_PARTICIPANT"


class TestTypingNextExpiry:
    """Tests for TypingService.next_expiry()."""

    def test_is_oldest_visible_state_plus_ttl(self, group_conversation, alice, bob, carol):
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(bob.external_id, group_conversation.id, True)
        with freeze_time("2026-01-01 12:00:02"):
            TypingService.set_typing(carol.external_id, group_conversation.id, True)

            expiry = TypingService.next_expiry(alice.external_id, group_conversation.id)

        assert expiry == datetime(2026, 1, 1, 12, 0, 5, tzinfo=dt_timezone.utc)

    def test_ignores_caller_and_expired_states(self, group_conversation, alice, bob):
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(bob.external_id, group_conversation.id, True)
        with freeze_time("2026-01-01 12:00:10"):
            TypingService.set_typing(alice.external_id, group_conversation.id, True)

            assert (
                TypingService.next_expiry(alice.external_id, group_conversation.id)
                is None
            )


class TestTypingCleanup:
    """Tests for TypingService.clear_for_user() and purge_stale()."""

    def test_clear_for_user_removes_all_their_states(
        self, direct_conversation, group_conversation, alice, bob
    ):
        TypingStateFactory(conversation=direct_conversation, user=alice)
        TypingStateFactory(conversation=group_conversation, user=alice)
        TypingStateFactory(conversation=group_conversation, user=bob)

        removed = TypingService.clear_for_user(alice.external_id)

        assert removed == 2
        assert list(TypingState.objects.values_list("user_id", flat=True)) == [
            bob.external_id
        ]

    def test_clear_for_user_without_states(self, alice):
        assert TypingService.clear_for_user(alice.external_id) == 0

    def test_purge_stale_deletes_only_expired_states(self, group_conversation, bob, carol):
        now = timezone.now()
        TypingStateFactory(
            conversation=group_conversation, user=bob, updated_at=now - timedelta(seconds=30)
        )
        TypingStateFactory(conversation=group_conversation, user=carol, updated_at=now)

        deleted = TypingService.purge_stale()

        assert deleted == 1
        assert list(TypingState.objects.values_list("user_id", flat=True)) == [
            carol.external_id
        ]


# =============================================================================
# ReadReceiptService
# =============================================================================


class TestMarkRead:
    """Tests for ReadReceiptService.mark_read()."""

    def test_creates_receipt(self, direct_conversation, bob):
        with freeze_time("2026-01-01 12:00:00"):
            result = ReadReceiptService.mark_read(bob.external_id, direct_conversation.id)

        assert result.success is True
        assert ReadReceiptService.get_last_read_at(
            bob.external_id, direct_conversation.id
        ) == datetime(2026, 1, 1, 12, tzinfo=dt_timezone.utc)

    def test_updates_existing_receipt(self, direct_conversation, bob):
        with freeze_time("2026-01-01 12:00:00"):
            ReadReceiptService.mark_read(bob.external_id, direct_conversation.id)
        with freeze_time("2026-01-01 12:05:00"):
            ReadReceiptService.mark_read(bob.external_id, direct_conversation.id)

        assert ReadReceipt.objects.count() == 1
        assert ReadReceipt.objects.get().last_read_at == datetime(
            2026, 1, 1, 12, 5, tzinfo=dt_timezone.utc
        )

    def test_never_moves_backwards(self, direct_conversation, bob):
        """
        A late mark_read with an older clock does not rewind the receipt.

        Why it matters: rewinding would resurrect already-read messages as
        unread.
        """
        later = timezone.now() + timedelta(hours=1)
        ReadReceiptFactory(
            user=bob, conversation=direct_conversation, last_read_at=later
        )

        ReadReceiptService.mark_read(bob.external_id, direct_conversation.id)

        assert ReadReceipt.objects.get().last_read_at == later

    def test_non_participant_is_ignored(self, direct_conversation, outsider):
        result = ReadReceiptService.mark_read(outsider.external_id, direct_conversation.id)

        assert result.success is True
        assert ReadReceipt.objects.count() == 0

    def test_unknown_conversation_is_ignored(self, bob):
        assert ReadReceiptService.mark_read(bob.external_id, 999999).success is True
        assert ReadReceipt.objects.count() == 0

    def test_get_last_read_at_without_receipt(self, direct_conversation, bob):
        assert (
            ReadReceiptService.get_last_read_at(bob.external_id, direct_conversation.id)
            is None
        )


# =============================================================================
# SidebarService.count_unread
# =============================================================================


class TestCountUnread:
    """Tests for SidebarService.count_unread()."""

    def test_counts_all_messages_from_others_without_receipt(
        self, direct_conversation, alice, bob
    ):
        MessageFactory(conversation=direct_conversation, sender=alice)
        MessageFactory(conversation=direct_conversation, sender=alice)
        MessageFactory(conversation=direct_conversation, sender=bob)

        assert SidebarService.count_unread(bob.external_id, direct_conversation.id) == 2

    def test_own_messages_are_never_unread(self, direct_conversation, alice):
        MessageFactory(conversation=direct_conversation, sender=alice)

        assert SidebarService.count_unread(alice.external_id, direct_conversation.id) == 0

    def test_only_messages_after_last_read_count(self, direct_conversation, alice, bob):
        with freeze_time("2026-01-01 12:00:00"):
            MessageFactory(conversation=direct_conversation, sender=alice)
        with freeze_time("2026-01-01 12:01:00"):
            ReadReceiptService.mark_read(bob.external_id, direct_conversation.id)
        with freeze_time("2026-01-01 12:02:00"):
            MessageFactory(conversation=direct_conversation, sender=alice)

        last_read_at = ReadReceiptService.get_last_read_at(
            bob.external_id, direct_conversation.id
        )
        assert (
            SidebarService.count_unread(
                bob.external_id, direct_conversation.id, last_read_at
            )
            == 1
        )

    def test_deleted_messages_are_not_unread(self, direct_conversation, alice, bob):
        message = MessageFactory(conversation=direct_conversation, sender=alice)
        message.soft_delete()

        assert SidebarService.count_unread(bob.external_id, direct_conversation.id) == 0

    def test_unread_never_exceeds_total(self, group_conversation, alice, bob, carol):
        for sender in (alice, bob, carol, alice):
            MessageFactory(conversation=group_conversation, sender=sender)

        total = group_conversation.messages.count()
        for user in (alice, bob, carol):
            assert (
                SidebarService.count_unread(user.external_id, group_conversation.id)
                <= total
            )


# =============================================================================
# SidebarService.get_sidebar_data
# =============================================================================


class TestSidebarEntries:
    """Tests for the content of SidebarService.get_sidebar_data()."""

    def test_every_other_user_has_an_entry(self, alice, bob, carol):
        """
        The sidebar lists all users, with or without a conversation.

        Why it matters: the sidebar doubles as the people picker.
        """
        entries = SidebarService.get_sidebar_data(alice.external_id)

        assert {entry["id"] for entry in entries} == {
            f"user:{bob.external_id}",
            f"user:{carol.external_id}",
        }
        carol_entry = _entry(entries, f"user:{carol.external_id}")
        assert carol_entry["is_group"] is False
        assert carol_entry["conversation_id"] is None
        assert carol_entry["last_message"] is None
        assert carol_entry["unread_count"] == 0
        assert carol_entry["member_count"] is None

    def test_inactive_users_are_hidden(self, alice, bob):
        UserFactory(external_id="user_gone", name="Gone", is_active=False)

        entries = SidebarService.get_sidebar_data(alice.external_id)

        assert [entry["id"] for entry in entries] == [f"user:{bob.external_id}"]

    def test_staff_accounts_are_hidden(self, alice, bob):
        User.objects.create_superuser(external_id="ops_admin", password="AdminPass123!")

        entries = SidebarService.get_sidebar_data(alice.external_id)

        assert [entry["id"] for entry in entries] == [f"user:{bob.external_id}"]

    def test_user_and_group_ids_never_collide(self, alice):
        """
        A user whose external id looks like a group id gets its own key.

        Why it matters: clients key sidebar rows by id; a collision would
        render one row in place of the other.
        """
        group = GroupConversationFactory(created_by=alice, group_name="Numbers")
        UserFactory(external_id=str(group.id), name="Numeric")

        ids = [entry["id"] for entry in SidebarService.get_sidebar_data(alice.external_id)]

        assert sorted(ids) == sorted([f"user:{group.id}", f"group:{group.id}"])

    def test_direct_message_scenario(self, alice, bob):
        """
        A writes "hi" to B: B sees it as unread, A does not.

        Why it matters: this is the core unread flow of the product.
        """
        conversation = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        ).data
        MessageService.send(alice.external_id, conversation.id, "hi")

        bob_view = _entry(
            SidebarService.get_sidebar_data(bob.external_id), f"user:{alice.external_id}"
        )
        alice_view = _entry(
            SidebarService.get_sidebar_data(alice.external_id), f"user:{bob.external_id}"
        )

        assert bob_view["conversation_id"] == conversation.id
        assert bob_view["other_user_id"] == alice.external_id
        assert bob_view["name"] == "Alice"
        assert bob_view["last_message"]["text"] == "hi"
        assert bob_view["last_message"]["sender_id"] == alice.external_id
        assert bob_view["unread_count"] == 1
        assert alice_view["unread_count"] == 0

        ReadReceiptService.mark_read(bob.external_id, conversation.id)

        bob_view = _entry(
            SidebarService.get_sidebar_data(bob.external_id), f"user:{alice.external_id}"
        )
        assert bob_view["unread_count"] == 0

    def test_group_scenario(self, alice, bob, carol):
        """
        A group "Team" of three appears for every member with its size.

        Why it matters: group rows show the member count instead of presence.
        """
        group = ConversationService.create_group(
            alice.external_id, [bob.external_id, carol.external_id], "Team"
        ).data

        for user in (alice, bob, carol):
            entry = _entry(
                SidebarService.get_sidebar_data(user.external_id), f"group:{group.id}"
            )
            assert entry["is_group"] is True
            assert entry["name"] == "Team"
            assert entry["member_count"] == 3
            assert entry["is_online"] is None
            assert entry["conversation_id"] == group.id

    def test_groups_of_others_are_hidden(self, group_conversation, outsider):
        entries = SidebarService.get_sidebar_data(outsider.external_id)

        assert all(entry["is_group"] is False for entry in entries)

    def test_online_flag_and_image_of_direct_entries(self, alice):
        UserFactory(
            external_id="user_dana", name="Dana", is_online=True, image_url=""
        )

        entry = _entry(SidebarService.get_sidebar_data(alice.external_id), "user:user_dana")

        assert entry["is_online"] is True
        assert entry["image_url"] is None

    def test_deleted_last_message_shows_placeholder_and_is_not_unread(
        self, direct_conversation, alice, bob
    ):
        message = MessageService.send(
            alice.external_id, direct_conversation.id, "secret"
        ).data
        MessageService.remove(alice.external_id, message.id)

        entry = _entry(
            SidebarService.get_sidebar_data(bob.external_id), f"user:{alice.external_id}"
        )

        assert entry["last_message"]["text"] == "Message deleted"
        assert entry["last_message"]["is_deleted"] is True
        assert entry["unread_count"] == 0

    def test_unread_is_zero_after_mark_read(self, group_conversation, alice, bob, carol):
        for sender in (alice, carol, alice):
            MessageService.send(sender.external_id, group_conversation.id, "msg")

        ReadReceiptService.mark_read(bob.external_id, group_conversation.id)

        entry = _entry(
            SidebarService.get_sidebar_data(bob.external_id), f"group:{group_conversation.id}"
        )
        assert entry["unread_count"] == 0


class TestSidebarOrdering:
    """Tests for the order of SidebarService.get_sidebar_data()."""

    def test_newest_activity_first_then_quiet_entries_in_stable_order(
        self, alice, bob, carol, outsider
    ):
        """
        Entries sort by last message time, newest first. Entries without
        messages follow, users by name before groups.

        Why it matters: the sidebar must put active chats on top and not
        jitter between refreshes.
        """
        direct = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        ).data
        team = GroupConversationFactory(
            created_by=alice, group_name="Team", members=[bob]
        )
        quiet = GroupConversationFactory(
            created_by=alice, group_name="Quiet", members=[carol]
        )

        with freeze_time("2026-01-01 12:00:00"):
            MessageService.send(alice.external_id, direct.id, "older")
        with freeze_time("2026-01-01 12:05:00"):
            MessageService.send(bob.external_id, team.id, "newer")

        entries = SidebarService.get_sidebar_data(alice.external_id)

        assert [entry["id"] for entry in entries] == [
            f"group:{team.id}",
            f"user:{bob.external_id}",
            f"user:{carol.external_id}",
            f"user:{outsider.external_id}",
            f"group:{quiet.id}",
        ]

    def test_new_message_moves_entry_to_top(self, alice, bob, carol):
        with_bob = ConversationService.get_or_create_direct(
            alice.external_id, bob.external_id
        ).data
        with_carol = ConversationService.get_or_create_direct(
            alice.external_id, carol.external_id
        ).data

        with freeze_time("2026-01-01 12:00:00"):
            MessageService.send(bob.external_id, with_bob.id, "first")
        with freeze_time("2026-01-01 12:01:00"):
            MessageService.send(carol.external_id, with_carol.id, "second")

        assert SidebarService.get_sidebar_data(alice.external_id)[0]["id"] == (
            f"user:{carol.external_id}"
        )

        with freeze_time("2026-01-01 12:02:00"):
            MessageService.send(bob.external_id, with_bob.id, "third")

        assert SidebarService.get_sidebar_data(alice.external_id)[0]["id"] == (
            f"user:{bob.external_id}"
        )

    def test_empty_directory(self, alice):
        assert SidebarService.get_sidebar_data(alice.external_id) == []

    def test_participant_rows_match_group_membership(self, group_conversation):
        assert Participant.objects.filter(conversation=group_conversation).count() == 3
