from datetime import datetime
from pydantic import BaseModel, AnyHttpUrl, Field
from typing import Literal, Optional, Union

# Empty string clears the image
ImageUrl = Union[AnyHttpUrl, Literal[""]]


class StoreCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    whatsapp: Optional[str] = Field(None, max_length=20)


class StoreSettingsUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    whatsapp: Optional[str] = Field(None, max_length=20)
    logo_url: Optional[ImageUrl] = None
    banner_url: Optional[ImageUrl] = None
    is_open: Optional[bool] = None


class StoreOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    banner_url: Optional[str] = None
    whatsapp: Optional[str] = None
    is_open: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StoreStats(BaseModel):
    products: int
    orders: int
    pending_orders: int
    today_orders: int
