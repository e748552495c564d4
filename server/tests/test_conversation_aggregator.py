"""Tests for the conversation aggregator: grouping, unread counts, ordering."""
import itertools
import logging
from datetime import datetime, timezone

from core.conversation_aggregator import aggregate_conversations, total_unread


VIEWER = "viewer-1"
SELLER = "seller-1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ids = itertools.count(1)


def _ts(minute: int) -> str:
    return datetime(2024, 5, 1, 12, minute, tzinfo=timezone.utc).isoformat()


def _row(
    listing_id="listing-1",
    sender_id=SELLER,
    receiver_id=VIEWER,
    content="hello",
    minute=0,
    is_read=False,
    msg_id=None,
    sender_name="Sam Seller",
    receiver_name="Vera Viewer",
):
    """Joined messages row as returned by the conversation query."""
    return {
        "id": msg_id or f"m-{next(_ids):04d}",
        "listing_id": listing_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": content,
        "is_read": is_read,
        "created_at": _ts(minute),
        "listing": {"id": listing_id, "seller_id": SELLER, "title": f"House {listing_id}", "images": []},
        "sender": {"id": sender_id, "full_name": sender_name},
        "receiver": {"id": receiver_id, "full_name": receiver_name},
    }


def _newest_first(rows):
    return sorted(rows, key=lambda r: r["created_at"], reverse=True)


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

class TestGrouping:
    def test_one_conversation_per_listing(self):
        rows = _newest_first([
            _row(listing_id="a", minute=1),
            _row(listing_id="a", minute=2, sender_id=VIEWER, receiver_id=SELLER),
            _row(listing_id="b", minute=3),
            _row(listing_id="c", minute=4),
            _row(listing_id="c", minute=5),
            _row(listing_id="c", minute=6),
        ])
        conversations = aggregate_conversations(rows, VIEWER)
        assert len(conversations) == 3
        assert {c.listing_id for c in conversations} == {"a", "b", "c"}

    def test_empty_history(self):
        assert aggregate_conversations([], VIEWER) == []

    def test_most_recent_activity_first(self):
        rows = _newest_first([
            _row(listing_id="old", minute=1),
            _row(listing_id="new", minute=9),
            _row(listing_id="mid", minute=5),
            _row(listing_id="old", minute=3),
        ])
        conversations = aggregate_conversations(rows, VIEWER)
        assert [c.listing_id for c in conversations] == ["new", "mid", "old"]

    def test_listing_snapshot_attached(self):
        conversations = aggregate_conversations([_row(listing_id="x")], VIEWER)
        assert conversations[0].listing is not None
        assert conversations[0].listing.title == "House x"

    def test_missing_listing_join(self):
        row = _row()
        row["listing"] = None
        conversations = aggregate_conversations([row], VIEWER)
        assert conversations[0].listing is None

    def test_messages_not_involving_viewer_are_ignored(self):
        rows = [
            _row(listing_id="mine", minute=2),
            _row(listing_id="theirs", sender_id="x", receiver_id="y", minute=3),
        ]
        conversations = aggregate_conversations(rows, VIEWER)
        assert [c.listing_id for c in conversations] == ["mine"]


# ---------------------------------------------------------------------------
# Summary fields
# ---------------------------------------------------------------------------

class TestSummary:
    def test_last_message_and_unread_count(self):
        """A(t1, unread), B(t2, unread), C(t3, read), all to the viewer."""
        rows = _newest_first([
            _row(content="A", minute=1, is_read=False),
            _row(content="B", minute=2, is_read=False),
            _row(content="C", minute=3, is_read=True),
        ])
        (conversation,) = aggregate_conversations(rows, VIEWER)
        assert conversation.last_message == "C"
        assert conversation.last_message_time == datetime(2024, 5, 1, 12, 3, tzinfo=timezone.utc)
        assert conversation.unread_count == 2

    def test_own_unread_messages_do_not_count(self):
        """Messages the viewer sent are unread for the other side, not for us."""
        rows = _newest_first([
            _row(sender_id=VIEWER, receiver_id=SELLER, minute=1, is_read=False),
            _row(sender_id=VIEWER, receiver_id=SELLER, minute=2, is_read=False),
        ])
        (conversation,) = aggregate_conversations(rows, VIEWER)
        assert conversation.unread_count == 0

    def test_other_user_when_viewer_is_receiver(self):
        (conversation,) = aggregate_conversations([_row(sender_name="Sam Seller")], VIEWER)
        assert conversation.other_user_id == SELLER
        assert conversation.other_user_name == "Sam Seller"

    def test_other_user_when_viewer_is_sender(self):
        row = _row(sender_id=VIEWER, receiver_id=SELLER, sender_name="Vera", receiver_name="Sam")
        (conversation,) = aggregate_conversations([row], VIEWER)
        assert conversation.other_user_id == SELLER
        assert conversation.other_user_name == "Sam"

    def test_missing_profile_degrades_to_unknown(self):
        row = _row()
        row["sender"] = None
        (conversation,) = aggregate_conversations([row], VIEWER)
        assert conversation.other_user_name == "Unknown"

    def test_older_messages_never_overwrite_summary(self):
        rows = _newest_first([
            _row(content="newest", minute=9, is_read=True),
            _row(content="older", minute=1, is_read=False),
        ])
        (conversation,) = aggregate_conversations(rows, VIEWER)
        assert conversation.last_message == "newest"
        assert conversation.unread_count == 1

    def test_total_unread(self):
        rows = _newest_first([
            _row(listing_id="a", minute=1),
            _row(listing_id="a", minute=2),
            _row(listing_id="b", minute=3),
            _row(listing_id="b", minute=4, is_read=True),
        ])
        assert total_unread(aggregate_conversations(rows, VIEWER)) == 3


# ---------------------------------------------------------------------------
# Order stability and multi-party listings
# ---------------------------------------------------------------------------

class TestOrderStability:
    def test_input_order_does_not_matter(self):
        rows = [
            _row(listing_id="a", minute=1, content="a1"),
            _row(listing_id="b", minute=2, content="b1"),
            _row(listing_id="a", minute=3, content="a2"),
        ]
        expected = aggregate_conversations(_newest_first(rows), VIEWER)
        for permutation in itertools.permutations(rows):
            assert aggregate_conversations(list(permutation), VIEWER) == expected

    def test_equal_timestamps_break_ties_on_id(self):
        first = _row(content="first", minute=5, msg_id="m-0001")
        second = _row(content="second", minute=5, msg_id="m-0002")

        one = aggregate_conversations([first, second], VIEWER)
        other = aggregate_conversations([second, first], VIEWER)

        assert one == other
        assert one[0].last_message == "second"

    def test_multiple_counterparties_are_reported(self, caplog):
        rows = _newest_first([
            _row(sender_id="buyer-2", receiver_id=VIEWER, minute=5, content="latest"),
            _row(sender_id="buyer-1", receiver_id=VIEWER, minute=1),
        ])
        with caplog.at_level(logging.WARNING, logger="core.conversation_aggregator"):
            (conversation,) = aggregate_conversations(rows, VIEWER)

        assert conversation.other_user_id == "buyer-2"
        assert conversation.participant_ids == ["buyer-2", "buyer-1"]
        assert conversation.unread_count == 2
        assert "counterparties" in caplog.text
