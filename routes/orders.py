from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.db import get_db
from core.tenancy import get_owner_store
from models.store import Store
from models.order import Order
from schemas.order import OrderOut

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=List[OrderOut])
def list_orders(store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    return (
        db.query(Order)
        .filter(Order.store_id == store.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    order = db.query(Order).filter(Order.store_id == store.id, Order.id == order_id).one_or_none()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
