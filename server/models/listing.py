"""Listing data models"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class Listing(BaseModel):
    """Snapshot of a property listing as joined onto a conversation"""
    id: str
    seller_id: str
    title: str
    description: Optional[str] = None
    price: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    property_type: Optional[str] = None  # house | apartment | condo | townhouse | land
    images: List[str] = []
    status: Optional[str] = None  # active | pending | sold | inactive
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        extra = "allow"

