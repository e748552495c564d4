"""Conversation Aggregator: folds a viewer's message rows into per-listing summaries."""
from typing import Dict, Iterable, List, Optional
import logging

from pydantic import ValidationError

from models.listing import Listing
from models.message import Conversation, Message
from models.user import UNKNOWN_NAME

logger = logging.getLogger(__name__)


def _display_name(profile: Optional[dict]) -> str:
    """Joined profile name, or the placeholder when the join came back empty."""
    if not profile:
        return UNKNOWN_NAME
    return profile.get("full_name") or UNKNOWN_NAME


def _listing_snapshot(row: dict) -> Optional[Listing]:
    data = row.get("listing")
    if not data:
        return None
    try:
        return Listing.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Unreadable listing join on message {row.get('id')}: {e}")
        return None


def aggregate_conversations(rows: Iterable[dict], viewer_id: str) -> List[Conversation]:
    """
    Group joined message rows into one Conversation per listing.

    Each row is a ``messages`` record with ``listing``, ``sender`` and
    ``receiver`` embedded (PostgREST join). Rows are re-sorted newest first
    with the message id as tie-breaker, so the result does not depend on how
    equal timestamps happened to be ordered by the backend.

    The newest message of a listing seeds the summary fields. Older ones only
    add to ``unread_count`` and ``participant_ids``.

    Raises pydantic.ValidationError on malformed rows.
    """
    entries = [(Message.model_validate(row), row) for row in rows]
    entries.sort(key=lambda e: (e[0].created_at, e[0].id), reverse=True)

    conversations: Dict[str, Conversation] = {}

    for msg, row in entries:
        if not msg.involves(viewer_id):
            logger.debug(f"Skipping message {msg.id}: viewer {viewer_id} is not a participant")
            continue

        is_receiver = msg.receiver_id == viewer_id
        unread = 1 if is_receiver and not msg.is_read else 0
        counterparty = msg.counterparty_of(viewer_id)

        conversation = conversations.get(msg.listing_id)
        if conversation is None:
            other_profile = row.get("sender") if is_receiver else row.get("receiver")
            conversations[msg.listing_id] = Conversation(
                listing_id=msg.listing_id,
                listing=_listing_snapshot(row),
                other_user_id=counterparty,
                other_user_name=_display_name(other_profile),
                last_message=msg.content,
                last_message_time=msg.created_at,
                unread_count=unread,
                participant_ids=[counterparty],
            )
            continue

        conversation.unread_count += unread
        if counterparty not in conversation.participant_ids:
            conversation.participant_ids.append(counterparty)

    for conversation in conversations.values():
        if len(conversation.participant_ids) > 1:
            # Keyed by listing only; the summary follows the most recent counterparty
            logger.warning(
                f"Listing {conversation.listing_id} has {len(conversation.participant_ids)} "
                f"counterparties for viewer {viewer_id}; showing {conversation.other_user_id}"
            )

    return list(conversations.values())


def total_unread(conversations: Iterable[Conversation]) -> int:
    """Unread badge count across all conversations."""
    return sum(c.unread_count for c in conversations)
