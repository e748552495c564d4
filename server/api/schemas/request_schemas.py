"""API request schemas"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class SendMessageRequest(BaseModel):
    """Reply inside a thread.

    ``receiver_id`` is optional: by default the reply goes to the thread's
    other participant, or to the listing seller for a new conversation.
    """
    content: str = Field(..., min_length=1, max_length=10000)
    receiver_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v


class ContactSellerRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v
