from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import Optional


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    active: bool = True

    @field_validator("category", "description")
    @classmethod
    def strip_blank(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    active: Optional[bool] = None

    @field_validator("category", "description")
    @classmethod
    def strip_blank(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ProductOut(BaseModel):
    id: int
    store_id: str
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    category: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True
