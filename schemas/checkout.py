from pydantic import BaseModel
from typing import Optional


class AddressIn(BaseModel):
    street: Optional[str] = None
    number: Optional[str] = None
    neighborhood: Optional[str] = None
    reference: Optional[str] = None


class CheckoutRequest(BaseModel):
    # Business rules are checked by services.checkout so that every field
    # gets its own message; the schema only handles types.
    name: Optional[str] = None
    mode: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    address: Optional[AddressIn] = None


class CheckoutAccepted(BaseModel):
    ticket_id: str
    whatsapp_url: Optional[str] = None
    message: str
    total: float
    total_display: str
    status_url: str


class DispatchStatusOut(BaseModel):
    ticket_id: str
    state: str
    message: str
    order_id: Optional[int] = None
