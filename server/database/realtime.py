"""Supabase Realtime change feed on database tables."""
import asyncio
from typing import Callable, Optional, Sequence
from uuid import uuid4
from realtime import RealtimeSubscribeStates
from supabase import AsyncClient
import logging

from core.exceptions import DataFetchError

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[dict], None]


def extract_record(payload: dict) -> dict:
    """
    Pull the changed row out of a postgres_changes payload.

    Realtime nests it under ``data.record`` (``data.old_record`` for deletes);
    older servers send ``new``/``old`` at the top level.
    """
    data = payload.get("data") or payload
    return (
        data.get("record")
        or data.get("new")
        or data.get("old_record")
        or data.get("old")
        or {}
    )


class FeedSubscription:
    """Handle for one Realtime channel. close() is safe to call twice."""

    def __init__(self, client: AsyncClient, channel, name: str):
        self._client = client
        self._channel = channel
        self.name = name
        self.active = True

    async def close(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            await self._client.remove_channel(self._channel)
            logger.info(f"Channel {self.name} removed")
        except Exception as e:
            # The socket may already be gone; the channel is dead either way
            logger.warning(f"Error removing channel {self.name}: {e}")


class ChangeFeed:
    """Open filtered postgres_changes channels."""

    def __init__(self, client: AsyncClient, schema: str = "public", join_timeout: float = 10.0):
        self.client = client
        self.schema = schema
        self.join_timeout = join_timeout

    async def subscribe(
        self,
        table: str,
        filters: Sequence[Optional[str]],
        on_change: ChangeHandler,
        event: str = "*",
        name_prefix: Optional[str] = None,
    ) -> FeedSubscription:
        """
        Listen for ``event`` on ``table``; one binding per filter.

        Filters use the Realtime column syntax, e.g. ``receiver_id=eq.<uuid>``.
        ``None`` listens to the whole table.

        Returns only once the server has acknowledged the join. A rejected or
        timed-out join removes the channel and raises DataFetchError.
        """
        name = f"{name_prefix or table}-{uuid4().hex[:8]}"
        channel = self.client.channel(name)
        for column_filter in filters:
            channel.on_postgres_changes(
                event,
                callback=on_change,
                table=table,
                schema=self.schema,
                filter=column_filter,
            )

        joined = asyncio.get_running_loop().create_future()

        def on_state(state: RealtimeSubscribeStates, error: Optional[Exception] = None) -> None:
            if joined.done():
                if state != RealtimeSubscribeStates.SUBSCRIBED:
                    logger.warning(f"Channel {name} left the subscribed state: {state} {error or ''}")
                return
            if state == RealtimeSubscribeStates.SUBSCRIBED:
                joined.set_result(None)
            else:
                joined.set_exception(error or ConnectionError(f"channel join ended in {state}"))

        subscription = FeedSubscription(self.client, channel, name)
        try:
            await channel.subscribe(on_state)
            await asyncio.wait_for(joined, timeout=self.join_timeout)
        except Exception as e:
            logger.error(f"Error subscribing channel {name}: {e}", exc_info=True)
            await subscription.close()
            raise DataFetchError("Could not open live updates", retryable=True) from e

        logger.info(f"Channel {name} subscribed to {table} ({len(filters)} filters)")
        return subscription
