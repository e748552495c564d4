"""API response schemas"""
from pydantic import BaseModel
from typing import List, Literal, Optional

from models.message import Conversation, Message, Thread


class ConversationListResponse(BaseModel):
    conversations: List[Conversation]
    unread_total: int


class ThreadResponse(BaseModel):
    thread: Thread


class MessageResponse(BaseModel):
    message: Message


class MarkReadResponse(BaseModel):
    listing_id: str
    updated: int


# Frames pushed over the live WebSockets
class ConversationsFrame(BaseModel):
    type: Literal["conversations"] = "conversations"
    conversations: List[Conversation]
    unread_total: int


class ThreadFrame(BaseModel):
    type: Literal["thread"] = "thread"
    thread: Thread


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    error: str
    detail: Optional[str] = None
    retryable: bool = False


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    retryable: bool = False
    login_url: Optional[str] = None
