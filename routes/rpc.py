from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.order import OrderCreated, OrderPayload, StoreStatusOut, StoreStatusRequest
from services.orders import OrderRejectedError, check_store_status, create_order

router = APIRouter(prefix="/rpc", tags=["rpc"])


@router.post("/create_order", response_model=OrderCreated, status_code=201)
def create_order_rpc(payload: OrderPayload, db: Session = Depends(get_db)):
    try:
        order = create_order(db, payload)
    except OrderRejectedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return OrderCreated(order_id=order.id)


@router.post("/check_store_status", response_model=StoreStatusOut)
def check_store_status_rpc(data: StoreStatusRequest, db: Session = Depends(get_db)):
    return StoreStatusOut(allowed=check_store_status(db, data.store_uuid))
