"""User data models"""
from pydantic import BaseModel
from typing import Optional

UNKNOWN_NAME = "Unknown"


class Profile(BaseModel):
    """Public display info for a marketplace user"""
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True
        extra = "ignore"

    @property
    def display_name(self) -> str:
        return self.full_name or UNKNOWN_NAME


class Viewer(BaseModel):
    """The authenticated user on whose behalf a request runs"""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None
