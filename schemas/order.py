from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional


class OrderItemSnapshot(BaseModel):
    product_id: int
    name: str = Field(min_length=1, max_length=200)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)


class DeliveryAddress(BaseModel):
    street: str
    number: str
    neighborhood: str
    reference: Optional[str] = None


class OrderPayload(BaseModel):
    """Arguments of the ``create_order`` remote procedure."""

    store_id: str
    items: List[OrderItemSnapshot]
    total: Decimal = Field(ge=0)
    customer_name: str = Field(min_length=2, max_length=100)
    customer_mode: str
    payment_method: Optional[str] = None
    address: Optional[DeliveryAddress] = None
    customer_notes: Optional[str] = Field(None, max_length=500)
    user_agent: Optional[str] = None
    created_at_client: Optional[datetime] = None


class OrderCreated(BaseModel):
    order_id: int


class StoreStatusRequest(BaseModel):
    store_uuid: str


class StoreStatusOut(BaseModel):
    allowed: bool


class OrderItemOut(BaseModel):
    id: int
    product_id: Optional[int] = None
    name: str
    quantity: int
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    store_id: str
    status: str
    total: float
    customer_name: str
    customer_mode: str
    payment_method: Optional[str] = None
    address: Optional[dict] = None
    customer_notes: Optional[str] = None
    created_at_client: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemOut]

    class Config:
        from_attributes = True
