"""Messaging service: conversations, threads and live updates for one viewer."""
from typing import Callable, Dict, List, Optional
from pydantic import ValidationError
import logging

from core.conversation_aggregator import aggregate_conversations
from core.exceptions import (
    AuthRequiredError,
    DataFetchError,
    ListingNotFoundError,
    WriteFailedError,
)
from database.realtime import ChangeFeed, FeedSubscription, extract_record
from database.repositories.message_repo import MessageRepository
from models.listing import Listing
from models.message import Conversation, Message, Thread, ThreadMessage
from models.user import Profile, UNKNOWN_NAME

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_MAX_LENGTH = 5000


def _record_involves(record: dict, user_id: str) -> bool:
    # Deletes may only carry the primary key; the server-side filter already matched
    if "sender_id" not in record and "receiver_id" not in record:
        return True
    return user_id in (record.get("sender_id"), record.get("receiver_id"))


class Subscription:
    """
    Live-update registration handed back to callers.

    ``on_change`` is called with no arguments: it means "re-fetch", never
    "here is the delta". After ``unsubscribe()`` it is never called again.
    """

    def __init__(self, on_change: Callable[[], None], accepts: Callable[[dict], bool]):
        self._on_change = on_change
        self._accepts = accepts
        self._feed: Optional[FeedSubscription] = None
        self.active = True

    def handle(self, payload: dict) -> None:
        if not self.active:
            return
        record = extract_record(payload)
        if not self._accepts(record):
            logger.debug(f"Ignoring change for message {record.get('id')}")
            return
        self._on_change()

    def attach(self, feed: FeedSubscription) -> None:
        self._feed = feed

    async def unsubscribe(self) -> None:
        self.active = False
        if self._feed is not None:
            await self._feed.close()
            self._feed = None


class MessagingService:
    """Handle conversation and thread operations on behalf of a viewer."""

    def __init__(
        self,
        message_repo: MessageRepository,
        change_feed: Optional[ChangeFeed] = None,
        max_message_length: int = DEFAULT_MESSAGE_MAX_LENGTH,
    ):
        self.message_repo = message_repo
        self.change_feed = change_feed
        self.max_message_length = max_message_length

    # ------------------------------------------------------------------
    # Conversation list
    # ------------------------------------------------------------------

    async def list_conversations(self, viewer_id: Optional[str]) -> List[Conversation]:
        """
        Rebuild the viewer's conversation list from their full message history.

        Raises DataFetchError on any read failure; there is no partial result.
        """
        self._require_viewer(viewer_id)

        rows = await self.message_repo.get_messages_for_user(viewer_id)
        try:
            conversations = aggregate_conversations(rows, viewer_id)
        except ValidationError as e:
            logger.error(f"Malformed message row for viewer {viewer_id}: {e}")
            raise DataFetchError("Could not load conversations") from e

        logger.info(
            f"Aggregated {len(rows)} messages into {len(conversations)} conversations "
            f"for viewer {viewer_id}"
        )
        return conversations

    async def mark_conversation_read(self, listing_id: str, viewer_id: Optional[str]) -> int:
        """Mark every unread message addressed to the viewer in a listing as read."""
        self._require_viewer(viewer_id)
        updated = await self.message_repo.mark_read(listing_id, viewer_id)
        if updated:
            logger.info(f"Marked {updated} messages read in listing {listing_id} for {viewer_id}")
        return updated

    async def subscribe_to_changes(
        self,
        viewer_id: Optional[str],
        on_change: Callable[[], None],
    ) -> Subscription:
        """Signal ``on_change`` whenever a message to or from the viewer changes."""
        self._require_viewer(viewer_id)
        subscription = Subscription(
            on_change,
            accepts=lambda record: _record_involves(record, viewer_id),
        )
        feed_subscription = await self._feed().subscribe(
            "messages",
            filters=[f"receiver_id=eq.{viewer_id}", f"sender_id=eq.{viewer_id}"],
            on_change=subscription.handle,
            name_prefix=f"messages-{viewer_id}",
        )
        subscription.attach(feed_subscription)
        return subscription

    # ------------------------------------------------------------------
    # Thread
    # ------------------------------------------------------------------

    async def get_thread(
        self,
        listing_id: str,
        viewer_id: Optional[str],
        mark_read: bool = True,
    ) -> Thread:
        """
        Chronological history of one listing conversation.

        Opening a thread marks it read first, so the returned messages and the
        next conversation list agree. Sender names, the listing snapshot and
        the other participant are best-effort: a failed lookup degrades to a
        placeholder, only the message fetch itself can fail the call.
        """
        self._require_viewer(viewer_id)

        if mark_read:
            try:
                await self.mark_conversation_read(listing_id, viewer_id)
            except WriteFailedError as e:
                logger.warning(f"Could not mark listing {listing_id} read on open: {e}")

        rows = await self.message_repo.get_thread_messages(listing_id, viewer_id)
        try:
            messages = [Message.model_validate(row) for row in rows]
        except ValidationError as e:
            logger.error(f"Malformed message row in listing {listing_id}: {e}")
            raise DataFetchError("Could not load messages") from e

        listing = await self._load_listing(listing_id)

        other_user_id = None
        if messages:
            other_user_id = messages[-1].counterparty_of(viewer_id)
        elif listing and listing.seller_id != viewer_id:
            other_user_id = listing.seller_id

        profile_ids = {m.sender_id for m in messages}
        if other_user_id:
            profile_ids.add(other_user_id)
        profiles = await self._load_profiles(profile_ids)

        other_user = None
        if other_user_id:
            other_user = profiles.get(other_user_id) or Profile(id=other_user_id, full_name=UNKNOWN_NAME)

        thread_messages = [
            ThreadMessage(
                **m.model_dump(),
                sender_name=profiles[m.sender_id].display_name if m.sender_id in profiles else UNKNOWN_NAME,
                is_own=m.sender_id == viewer_id,
            )
            for m in messages
        ]

        return Thread(
            listing_id=listing_id,
            listing=listing,
            other_user=other_user,
            messages=thread_messages,
        )

    async def send_message(
        self,
        listing_id: str,
        sender_id: Optional[str],
        receiver_id: str,
        content: str,
    ) -> Message:
        """
        Insert a message. Returns the stored message.

        Raises ValueError for empty, oversized or self-addressed messages and
        WriteFailedError if the backend rejects the insert.
        """
        self._require_viewer(sender_id)

        content = (content or "").strip()
        if not content:
            raise ValueError("Message cannot be empty")
        if len(content) > self.max_message_length:
            raise ValueError(f"Message is longer than {self.max_message_length} characters")
        if not receiver_id:
            raise ValueError("Message has no recipient")
        if receiver_id == sender_id:
            raise ValueError("Cannot send a message to yourself")

        row = await self.message_repo.insert_message(
            listing_id=listing_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
        )
        try:
            message = Message.model_validate(row)
        except ValidationError as e:
            # Stored, but the row came back unreadable; the next fetch shows it
            logger.error(f"Inserted message row did not validate: {e}")
            raise DataFetchError("Message sent but could not be loaded") from e

        logger.info(f"Message {message.id} sent in listing {listing_id}")
        return message

    async def resolve_receiver(self, listing_id: str, viewer_id: Optional[str]) -> str:
        """Counterparty for a reply: latest thread participant, else the listing seller."""
        self._require_viewer(viewer_id)

        rows = await self.message_repo.get_thread_messages(listing_id, viewer_id)
        for row in reversed(rows):
            other = row["receiver_id"] if row["sender_id"] == viewer_id else row["sender_id"]
            if other != viewer_id:
                return other

        listing = await self.message_repo.get_listing(listing_id)
        if not listing:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        if listing["seller_id"] == viewer_id:
            raise ValueError("No buyer has messaged about this listing yet")
        return listing["seller_id"]

    async def contact_seller(
        self,
        listing_id: str,
        viewer_id: Optional[str],
        content: str,
    ) -> Message:
        """Open (or continue) a conversation with the seller of a listing."""
        self._require_viewer(viewer_id)

        listing = await self.message_repo.get_listing(listing_id)
        if not listing:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        if listing["seller_id"] == viewer_id:
            raise ValueError("You cannot contact yourself about your own listing")

        return await self.send_message(
            listing_id=listing_id,
            sender_id=viewer_id,
            receiver_id=listing["seller_id"],
            content=content,
        )

    async def subscribe_to_thread(
        self,
        listing_id: str,
        viewer_id: Optional[str],
        on_change: Callable[[], None],
    ) -> Subscription:
        """Signal ``on_change`` whenever a message of this listing involving the viewer changes."""
        self._require_viewer(viewer_id)

        def accepts(record: dict) -> bool:
            if record.get("listing_id", listing_id) != listing_id:
                return False
            return _record_involves(record, viewer_id)

        subscription = Subscription(on_change, accepts=accepts)
        feed_subscription = await self._feed().subscribe(
            "messages",
            filters=[f"listing_id=eq.{listing_id}"],
            on_change=subscription.handle,
            name_prefix=f"messages-{listing_id}",
        )
        subscription.attach(feed_subscription)
        return subscription

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_viewer(self, viewer_id: Optional[str]) -> None:
        if not viewer_id:
            raise AuthRequiredError()

    def _feed(self) -> ChangeFeed:
        if self.change_feed is None:
            raise RuntimeError("MessagingService was created without a change feed")
        return self.change_feed

    async def _load_listing(self, listing_id: str) -> Optional[Listing]:
        try:
            data = await self.message_repo.get_listing(listing_id)
            return Listing.model_validate(data) if data else None
        except (DataFetchError, ValidationError) as e:
            logger.warning(f"Listing {listing_id} unavailable for thread view: {e}")
            return None

    async def _load_profiles(self, user_ids) -> Dict[str, Profile]:
        try:
            rows = await self.message_repo.get_profiles(user_ids)
        except DataFetchError as e:
            logger.warning(f"Profiles unavailable, using placeholders: {e}")
            return {}

        profiles: Dict[str, Profile] = {}
        for row in rows:
            try:
                profile = Profile.model_validate(row)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable profile row {row!r}: {e}")
                continue
            profiles[profile.id] = profile
        return profiles
