"""Unit tests for the conversation fold (no database)."""
from datetime import datetime, timedelta

import pytest

from social_api.conversations import counterpart_of, summarize_conversations
from social_api.models import Message

A = "aaaaaaaa-0000-4000-8000-000000000001"
B = "bbbbbbbb-0000-4000-8000-000000000002"
C = "cccccccc-0000-4000-8000-000000000003"
D = "dddddddd-0000-4000-8000-000000000004"

T0 = datetime(2024, 1, 1, 12, 0, 0)


def make_message(
    sender: str,
    receiver: str,
    at: int,
    content: str = "hi",
    is_read: bool = False,
    message_id: str | None = None,
) -> Message:
    """Helper to build a transient Message at T0 + `at` seconds."""
    return Message(
        message_id=message_id or f"m-{sender[:1]}{receiver[:1]}-{at:04d}",
        sender_id=sender,
        receiver_id=receiver,
        content=content,
        is_read=is_read,
        created_at=T0 + timedelta(seconds=at),
    )


@pytest.mark.unit
class TestCounterpart:
    """Tests for counterpart_of."""

    def test_receiver_is_counterpart_when_requester_sent(self) -> None:
        assert counterpart_of(make_message(A, B, 1), A) == B

    def test_sender_is_counterpart_when_requester_received(self) -> None:
        assert counterpart_of(make_message(B, A, 1), A) == B

    def test_self_message_counterpart_is_requester(self) -> None:
        assert counterpart_of(make_message(A, A, 1), A) == A


@pytest.mark.unit
class TestSummarizeConversations:
    """Tests for summarize_conversations."""

    def test_no_messages_yields_empty_list(self) -> None:
        assert summarize_conversations(A, []) == []

    def test_one_summary_per_counterpart(self) -> None:
        messages = [
            make_message(A, B, 1),
            make_message(B, A, 2),
            make_message(C, A, 3),
            make_message(A, B, 4),
        ]
        folds = summarize_conversations(A, messages)
        assert sorted(f.counterpart_id for f in folds) == sorted([B, C])

    def test_last_message_is_latest_in_either_direction(self) -> None:
        messages = [
            make_message(B, A, 5, content="from b"),
            make_message(A, B, 9, content="from a, latest"),
            make_message(B, A, 7, content="from b again"),
        ]
        (fold,) = summarize_conversations(A, messages)
        assert fold.last_message.content == "from a, latest"

    def test_input_order_does_not_matter(self) -> None:
        messages = [make_message(B, A, t, content=str(t)) for t in (3, 8, 1, 6)]
        forward = summarize_conversations(A, messages)
        backward = summarize_conversations(A, list(reversed(messages)))
        assert forward[0].last_message.content == backward[0].last_message.content == "8"

    def test_unread_counts_only_messages_to_requester(self) -> None:
        messages = [
            make_message(B, A, 1),                 # unread, to A
            make_message(B, A, 2, is_read=True),   # read, to A
            make_message(A, B, 3),                 # unread but sent by A
            make_message(B, A, 4),                 # unread, to A
        ]
        (fold,) = summarize_conversations(A, messages)
        assert fold.unread_count == 2

    def test_unread_count_is_zero_for_outgoing_only(self) -> None:
        (fold,) = summarize_conversations(A, [make_message(A, B, 1), make_message(A, B, 2)])
        assert fold.unread_count == 0

    def test_ordered_most_recent_conversation_first(self) -> None:
        messages = [
            make_message(A, B, 10),
            make_message(C, A, 30),
            make_message(A, D, 20),
        ]
        folds = summarize_conversations(A, messages)
        assert [f.counterpart_id for f in folds] == [C, D, B]

    def test_equal_timestamps_break_on_larger_message_id(self) -> None:
        messages = [
            make_message(B, A, 5, content="first", message_id="0001"),
            make_message(A, B, 5, content="second", message_id="0002"),
        ]
        (fold,) = summarize_conversations(A, messages)
        assert fold.last_message.content == "second"

    def test_equal_last_timestamps_order_by_message_id(self) -> None:
        messages = [
            make_message(B, A, 5, message_id="0001"),
            make_message(C, A, 5, message_id="0009"),
        ]
        folds = summarize_conversations(A, messages)
        assert [f.counterpart_id for f in folds] == [C, B]

    def test_ignores_messages_not_involving_requester(self) -> None:
        messages = [make_message(B, C, 1), make_message(A, B, 2)]
        folds = summarize_conversations(A, messages)
        assert [f.counterpart_id for f in folds] == [B]

    def test_self_messages_fold_under_requester(self) -> None:
        messages = [make_message(A, A, 1, is_read=False)]
        (fold,) = summarize_conversations(A, messages)
        assert fold.counterpart_id == A
        assert fold.unread_count == 1

    def test_summary_matches_per_pair_definition(self) -> None:
        """Last message is the max timestamp; unread counts B → A unread."""
        messages = [
            make_message(A, B, 1),
            make_message(B, A, 2, is_read=True),
            make_message(B, A, 3),
            make_message(A, C, 4),
            make_message(B, A, 5),
            make_message(C, A, 6, is_read=True),
        ]
        folds = {f.counterpart_id: f for f in summarize_conversations(A, messages)}

        between_ab = [m for m in messages if {m.sender_id, m.receiver_id} == {A, B}]
        assert folds[B].last_message is max(between_ab, key=lambda m: m.created_at)
        assert folds[B].unread_count == sum(
            1 for m in between_ab if m.sender_id == B and m.receiver_id == A and not m.is_read
        )
        assert folds[C].unread_count == 0
