"""
Shared singleton dependencies for the application.

The Supabase clients and the change feed are created once at startup and
reused across requests. Repositories and services are thin wrappers and are
built per request.
"""
import logging
from typing import Optional

from config.settings import settings
from database.client import close_realtime, get_supabase, init_realtime, init_supabase
from database.realtime import ChangeFeed
from database.repositories.message_repo import MessageRepository
from services.messaging_service import MessagingService

logger = logging.getLogger(__name__)

# Module-level singletons: initialized once via init_dependencies()
_change_feed: Optional[ChangeFeed] = None


async def init_dependencies() -> None:
    """Initialize all shared singletons. Called once at application startup."""
    global _change_feed

    logger.info("Initializing shared dependencies...")
    init_supabase()
    _change_feed = ChangeFeed(
        await init_realtime(),
        join_timeout=settings.REALTIME_JOIN_TIMEOUT_SECONDS,
    )
    logger.info("Dependencies initialized")


async def shutdown_dependencies() -> None:
    """Clean up resources on shutdown."""
    global _change_feed
    _change_feed = None
    await close_realtime()


def get_messaging_service() -> MessagingService:
    """
    Build a MessagingService using shared singletons.

    WARNING: MessagingService and MessageRepository MUST remain stateless.
    Per-connection state (live views, subscriptions) belongs to the
    WebSocket handler that owns it.
    """
    return MessagingService(
        MessageRepository(get_supabase()),
        change_feed=_change_feed,
        max_message_length=settings.MESSAGE_MAX_LENGTH,
    )
