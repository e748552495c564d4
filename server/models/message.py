"""Message data models"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from models.listing import Listing
from models.user import Profile


class Message(BaseModel):
    """A row of the messages table. Only is_read ever changes."""
    id: str
    listing_id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
        extra = "ignore"

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def counterparty_of(self, user_id: str) -> str:
        return self.sender_id if self.receiver_id == user_id else self.receiver_id


class Conversation(BaseModel):
    """Per-listing summary derived from the viewer's messages. Never persisted."""
    listing_id: str
    listing: Optional[Listing] = None
    other_user_id: str
    other_user_name: str
    last_message: str
    last_message_time: datetime
    unread_count: int = 0
    participant_ids: List[str] = []  # every counterparty seen, most recent first


class ThreadMessage(Message):
    """Message as rendered inside a thread"""
    sender_name: str
    is_own: bool = False


class Thread(BaseModel):
    """Chronological message history of one listing conversation"""
    listing_id: str
    listing: Optional[Listing] = None
    other_user: Optional[Profile] = None
    messages: List[ThreadMessage] = []
