"""Conversation API routes: list, thread, send, mark read, contact seller."""
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from api.middleware.auth_middleware import get_current_viewer
from api.schemas.request_schemas import ContactSellerRequest, SendMessageRequest
from api.schemas.response_schemas import (
    ConversationListResponse,
    MarkReadResponse,
    MessageResponse,
    ThreadResponse,
)
from core.conversation_aggregator import total_unread
from core.dependencies import get_messaging_service
from models.user import Viewer
from services.messaging_service import MessagingService

logger = logging.getLogger(__name__)
router = APIRouter()
listings_router = APIRouter()


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    viewer: Viewer = Depends(get_current_viewer),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversations of the viewer, most recently active first"""
    conversations = await service.list_conversations(viewer.id)
    return ConversationListResponse(
        conversations=conversations,
        unread_total=total_unread(conversations),
    )


@router.get("/{listing_id}", response_model=ThreadResponse)
async def get_thread(
    listing_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: MessagingService = Depends(get_messaging_service),
):
    """Open a thread. Marks the viewer's unread messages in it as read."""
    thread = await service.get_thread(listing_id, viewer.id)
    return ThreadResponse(thread=thread)


@router.post(
    "/{listing_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    listing_id: str,
    request: SendMessageRequest,
    viewer: Viewer = Depends(get_current_viewer),
    service: MessagingService = Depends(get_messaging_service),
):
    """Reply in a thread"""
    try:
        receiver_id = request.receiver_id or await service.resolve_receiver(listing_id, viewer.id)
        message = await service.send_message(
            listing_id=listing_id,
            sender_id=viewer.id,
            receiver_id=receiver_id,
            content=request.content,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return MessageResponse(message=message)


@router.post("/{listing_id}/read", response_model=MarkReadResponse)
async def mark_read(
    listing_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    service: MessagingService = Depends(get_messaging_service),
):
    """Mark a conversation read. Safe to repeat."""
    updated = await service.mark_conversation_read(listing_id, viewer.id)
    return MarkReadResponse(listing_id=listing_id, updated=updated)


@listings_router.post(
    "/{listing_id}/contact",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def contact_seller(
    listing_id: str,
    request: ContactSellerRequest,
    viewer: Viewer = Depends(get_current_viewer),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send the first message about a listing to its seller"""
    try:
        message = await service.contact_seller(listing_id, viewer.id, request.content)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return MessageResponse(message=message)
