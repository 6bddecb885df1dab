from pydantic import BaseModel, Field
from typing import List, Optional


class MenuProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    price_display: str
    image_url: Optional[str] = None


class MenuCategoryOut(BaseModel):
    name: str
    products: List[MenuProductOut]


class MenuStoreOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    banner_url: Optional[str] = None
    is_open: bool
    contact_url: Optional[str] = None


class MenuOut(BaseModel):
    store: MenuStoreOut
    categories: List[MenuCategoryOut]


class CartItemAdd(BaseModel):
    product_id: int


class CartItemUpdate(BaseModel):
    # Zero or less removes the line
    quantity: int


class CartLineOut(BaseModel):
    product_id: int
    name: str
    unit_price: float
    quantity: int = Field(ge=1)
    subtotal: float
    subtotal_display: str
    image_url: Optional[str] = None


class CartOut(BaseModel):
    store_id: str
    session_id: str
    items: List[CartLineOut]
    item_count: int
    total: float
    total_display: str
