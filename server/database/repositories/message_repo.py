"""Message repository for database operations."""
from asyncio import to_thread
from typing import Iterable, List, Optional
from supabase import Client
import logging

from core.exceptions import DataFetchError, WriteFailedError

logger = logging.getLogger(__name__)

# PostgREST embed: parent listing plus both participants' display names
CONVERSATION_SELECT = (
    "*, "
    "listing:listings(*), "
    "sender:profiles!messages_sender_id_fkey(id, full_name), "
    "receiver:profiles!messages_receiver_id_fkey(id, full_name)"
)


def _participant_filter(user_id: str) -> str:
    return f"sender_id.eq.{user_id},receiver_id.eq.{user_id}"


class MessageRepository:
    """Handle message, listing and profile reads/writes against Supabase.

    Every SDK failure is logged here and re-raised as DataFetchError (reads)
    or WriteFailedError (writes).
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def get_messages_for_user(self, user_id: str) -> List[dict]:
        """All messages the user sent or received, joined, newest first."""
        try:
            response = await to_thread(
                lambda: self.supabase.table("messages")
                .select(CONVERSATION_SELECT)
                .or_(_participant_filter(user_id))
                .order("created_at", desc=True)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching messages for user {user_id}: {e}")
            raise DataFetchError("Could not load conversations", retryable=True) from e

    async def get_thread_messages(self, listing_id: str, user_id: str) -> List[dict]:
        """Messages of one listing involving the user, oldest first."""
        try:
            response = await to_thread(
                lambda: self.supabase.table("messages")
                .select("*")
                .eq("listing_id", listing_id)
                .or_(_participant_filter(user_id))
                .order("created_at")
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching thread {listing_id}: {e}")
            raise DataFetchError("Could not load messages", retryable=True) from e

    async def insert_message(
        self,
        listing_id: str,
        sender_id: str,
        receiver_id: str,
        content: str,
    ) -> dict:
        """Insert a message and return the stored row."""
        data = {
            "listing_id": listing_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
        }
        try:
            response = await to_thread(
                lambda: self.supabase.table("messages").insert(data).execute()
            )
        except Exception as e:
            logger.error(f"Error inserting message: {e}", exc_info=True)
            raise WriteFailedError("Failed to send message", retryable=True) from e

        if not response.data:
            logger.error(f"Insert into messages returned no row for listing {listing_id}")
            raise WriteFailedError("Failed to send message")
        return response.data[0]

    async def mark_read(self, listing_id: str, receiver_id: str) -> int:
        """Flip is_read on the receiver's unread messages of a listing.

        Returns the number of rows changed; 0 once everything is read.
        """
        try:
            response = await to_thread(
                lambda: self.supabase.table("messages")
                .update({"is_read": True})
                .eq("listing_id", listing_id)
                .eq("receiver_id", receiver_id)
                .eq("is_read", False)
                .execute()
            )
            return len(response.data) if response.data else 0
        except Exception as e:
            logger.error(f"Error marking listing {listing_id} read: {e}")
            raise WriteFailedError("Failed to mark messages as read", retryable=True) from e

    async def get_listing(self, listing_id: str) -> Optional[dict]:
        """Get listing by ID. Returns None if not found."""
        try:
            response = await to_thread(
                lambda: self.supabase.table("listings")
                .select("*")
                .eq("id", listing_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error getting listing {listing_id}: {e}")
            raise DataFetchError("Could not load listing") from e

    async def get_profiles(self, user_ids: Iterable[str]) -> List[dict]:
        """Display info for a set of users, in no particular order."""
        ids = sorted(set(user_ids))
        if not ids:
            return []
        try:
            response = await to_thread(
                lambda: self.supabase.table("profiles")
                .select("id, full_name, avatar_url")
                .in_("id", ids)
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error getting profiles: {e}")
            raise DataFetchError("Could not load profiles") from e
