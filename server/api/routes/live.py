"""Live WebSocket routes: push re-aggregated state whenever the change feed fires."""
from typing import Awaitable, Callable
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import logging

from api.middleware.auth_middleware import get_websocket_viewer
from api.schemas.response_schemas import ConversationsFrame, ErrorFrame, ThreadFrame
from config.settings import settings
from core.conversation_aggregator import total_unread
from core.dependencies import get_messaging_service
from core.exceptions import MessagingError
from core.live_sync import LiveView
from services.messaging_service import MessagingService, Subscription

logger = logging.getLogger(__name__)
router = APIRouter()

# Close codes in the application range (4000-4999)
WS_AUTH_REQUIRED = 4401
WS_FEED_UNAVAILABLE = 4503


def _error_sender(websocket: WebSocket) -> Callable[[MessagingError], Awaitable[None]]:
    async def send_error(error: MessagingError) -> None:
        frame = ErrorFrame(error=error.code, detail=error.message, retryable=error.retryable)
        await websocket.send_json(frame.model_dump(mode="json"))
    return send_error


async def _serve(
    websocket: WebSocket,
    view: LiveView,
    subscribe: Callable[[Callable[[], None]], Awaitable[Subscription]],
) -> None:
    """
    Own one live view for the lifetime of a socket.

    Subscribes before the first fetch so no change slips between the two.
    Any text frame from the client requests a refresh. On disconnect the view
    stops applying results and the channel is removed.
    """
    subscription = None
    try:
        subscription = await subscribe(view.notify)
        await view.refresh()
        while True:
            await websocket.receive_text()
            view.notify()
    except WebSocketDisconnect:
        logger.info(f"Live view {view.name} disconnected")
    except MessagingError as e:
        logger.error(f"Live view {view.name} could not start: {e}")
        await _error_sender(websocket)(e)
        await websocket.close(code=WS_FEED_UNAVAILABLE)
    finally:
        await view.close()
        if subscription is not None:
            await subscription.unsubscribe()


@router.websocket("/ws/conversations")
async def conversations_socket(
    websocket: WebSocket,
    service: MessagingService = Depends(get_messaging_service),
):
    """Stream the viewer's conversation list"""
    viewer = get_websocket_viewer(websocket)
    if viewer is None:
        await websocket.close(code=WS_AUTH_REQUIRED)
        return
    await websocket.accept()

    async def push(conversations) -> None:
        frame = ConversationsFrame(
            conversations=conversations,
            unread_total=total_unread(conversations),
        )
        await websocket.send_json(frame.model_dump(mode="json"))

    view = LiveView(
        fetch=lambda: service.list_conversations(viewer.id),
        on_update=push,
        on_error=_error_sender(websocket),
        debounce_seconds=settings.LIVE_SYNC_DEBOUNCE_SECONDS,
        name=f"conversations:{viewer.id}",
    )
    await _serve(
        websocket,
        view,
        lambda on_change: service.subscribe_to_changes(viewer.id, on_change),
    )


@router.websocket("/ws/conversations/{listing_id}")
async def thread_socket(
    websocket: WebSocket,
    listing_id: str,
    service: MessagingService = Depends(get_messaging_service),
):
    """Stream one thread. Each refresh also marks it read, since it is on screen."""
    viewer = get_websocket_viewer(websocket)
    if viewer is None:
        await websocket.close(code=WS_AUTH_REQUIRED)
        return
    await websocket.accept()

    async def push(thread) -> None:
        await websocket.send_json(ThreadFrame(thread=thread).model_dump(mode="json"))

    view = LiveView(
        fetch=lambda: service.get_thread(listing_id, viewer.id),
        on_update=push,
        on_error=_error_sender(websocket),
        debounce_seconds=settings.LIVE_SYNC_DEBOUNCE_SECONDS,
        name=f"thread:{listing_id}:{viewer.id}",
    )
    await _serve(
        websocket,
        view,
        lambda on_change: service.subscribe_to_thread(listing_id, viewer.id, on_change),
    )
