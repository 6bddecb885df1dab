"""Access gate shared by the admin surface and the public storefront.

Both sides ask the same question, through :func:`services.access.is_allowed`:
may this owner's account be used right now?
"""
from datetime import datetime

from fastapi import Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.db import get_db
from core.logging import get_logger
from models.order import Order
from models.product import Product
from models.store import Store
from models.user import User
from routes.auth import get_current_user
from services.access import is_allowed

logger = get_logger(__name__)

SUBSCRIPTION_EXPIRED = "Assinatura expirada"
STORE_NOT_FOUND = "Loja não encontrada"
STORE_UNAVAILABLE = "Cardápio indisponível no momento"


def require_active_subscription(user: User = Depends(get_current_user)) -> User:
    """Admin routes: the owner must be inside a trial or a paid period."""
    if not is_allowed(user.subscription):
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=SUBSCRIPTION_EXPIRED)
    return user


def get_owner_store(user: User = Depends(require_active_subscription), db: Session = Depends(get_db)) -> Store:
    """The store owned by the current (allowed) user."""
    store = db.query(Store).filter(Store.owner_id == user.id).one_or_none()
    if not store:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Store not found")
    return store


def get_storefront(store_id: str, db: Session = Depends(get_db)) -> Store:
    """Public routes under ``/menu/{store_id}``."""
    store = db.get(Store, store_id)
    if not store:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=STORE_NOT_FOUND)
    if not is_allowed(store.owner_subscription):
        logger.info("Blocked storefront access to %s: subscription window closed", store_id)
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=STORE_UNAVAILABLE)
    return store


def get_store_usage_stats(store_id: str, db: Session) -> dict:
    """Dashboard counters for a store."""
    product_count = db.query(func.count(Product.id)).filter(Product.store_id == store_id).scalar()
    order_count = db.query(func.count(Order.id)).filter(Order.store_id == store_id).scalar()
    pending_count = db.query(func.count(Order.id)).filter(
        Order.store_id == store_id,
        Order.status == "pending"
    ).scalar()

    now = datetime.utcnow()
    day_start = datetime(now.year, now.month, now.day)
    today_count = db.query(func.count(Order.id)).filter(
        Order.store_id == store_id,
        Order.created_at >= day_start
    ).scalar()

    return {
        "products": product_count or 0,
        "orders": order_count or 0,
        "pending_orders": pending_count or 0,
        "today_orders": today_count or 0,
    }
