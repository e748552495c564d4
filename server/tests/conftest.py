"""Shared test fixtures and configuration."""
import sys
import os

# Ensure the server package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set required environment variables BEFORE any application module is imported.
# These are dummy values used only in tests: no real connections are made.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key-for-unit-tests")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-unit-tests")
os.environ.setdefault("LIVE_SYNC_DEBOUNCE_SECONDS", "0")

import pytest  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402

from services.messaging_service import MessagingService  # noqa: E402


VIEWER = "viewer-1"
SELLER = "seller-1"
LISTING = "listing-1"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# In-memory stand-ins
# ---------------------------------------------------------------------------

class InMemoryMessages:
    """Just enough of the messages table to exercise the service end to end."""

    def __init__(self):
        self.rows = []
        self.profiles = {
            VIEWER: {"id": VIEWER, "full_name": "Vera Viewer"},
            SELLER: {"id": SELLER, "full_name": "Sam Seller"},
        }
        self.listings = {
            LISTING: {"id": LISTING, "seller_id": SELLER, "title": "Cozy cottage", "images": ["a.jpg"]},
        }

    def add(self, sender_id, receiver_id, content, is_read=False, listing_id=LISTING):
        row = {
            "id": f"m-{len(self.rows) + 1:04d}",
            "listing_id": listing_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "is_read": is_read,
            "created_at": (BASE_TIME + timedelta(minutes=len(self.rows))).isoformat(),
        }
        self.rows.append(row)
        return row

    def _joined(self, row):
        return {
            **row,
            "listing": self.listings.get(row["listing_id"]),
            "sender": self.profiles.get(row["sender_id"]),
            "receiver": self.profiles.get(row["receiver_id"]),
        }

    async def get_messages_for_user(self, user_id):
        mine = [r for r in self.rows if user_id in (r["sender_id"], r["receiver_id"])]
        mine.sort(key=lambda r: r["created_at"], reverse=True)
        return [self._joined(r) for r in mine]

    async def get_thread_messages(self, listing_id, user_id):
        return sorted(
            (
                dict(r) for r in self.rows
                if r["listing_id"] == listing_id and user_id in (r["sender_id"], r["receiver_id"])
            ),
            key=lambda r: r["created_at"],
        )

    async def insert_message(self, listing_id, sender_id, receiver_id, content):
        return dict(self.add(sender_id, receiver_id, content, listing_id=listing_id))

    async def mark_read(self, listing_id, receiver_id):
        updated = 0
        for r in self.rows:
            if r["listing_id"] == listing_id and r["receiver_id"] == receiver_id and not r["is_read"]:
                r["is_read"] = True
                updated += 1
        return updated

    async def get_listing(self, listing_id):
        return self.listings.get(listing_id)

    async def get_profiles(self, user_ids):
        return [self.profiles[u] for u in set(user_ids) if u in self.profiles]


class FakeFeedSubscription:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakeChangeFeed:
    def __init__(self):
        self.calls = []
        self.handler = None
        self.subscription = FakeFeedSubscription()

    async def subscribe(self, table, filters, on_change, event="*", name_prefix=None):
        self.calls.append({"table": table, "filters": list(filters)})
        self.handler = on_change
        return self.subscription

    def emit(self, record):
        self.handler({"data": {"type": "INSERT", "table": "messages", "record": record}})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    return InMemoryMessages()


@pytest.fixture
def feed():
    return FakeChangeFeed()


@pytest.fixture
def service(store, feed):
    return MessagingService(store, change_feed=feed, max_message_length=100)

