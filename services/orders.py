from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import db_session
from core.logging import get_logger
from models.order import Order
from models.order_item import OrderItem
from models.product import Product
from models.store import Store
from schemas.order import OrderPayload
from services.access import is_allowed
from services.cart import Cart
from services.checkout import FulfillmentMode, PaymentMethod, quantize_money

logger = get_logger(__name__)


class OrderRejectedError(Exception):
    """The backend refused to record an order."""


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def check_store_status(db: Session, store_id: str) -> bool:
    """Server-side twin of the menu gate: unknown stores are never allowed."""
    store = db.get(Store, store_id)
    if not store:
        return False
    return is_allowed(store.owner_subscription)


def load_active_products(db: Session, store_id: str, product_ids: Iterable[int]) -> Dict[int, Product]:
    ids = set(product_ids)
    if not ids:
        return {}
    rows = (
        db.query(Product)
        .filter(Product.store_id == store_id, Product.id.in_(ids), Product.active.is_(True))
        .all()
    )
    return {product.id: product for product in rows}


def refresh_cart(db: Session, store_id: str, cart: Cart) -> List[int]:
    """Bring cart lines up to date with the catalog; returns dropped product ids."""
    catalog = load_active_products(db, store_id, (line.product.id for line in cart.lines))
    dropped = cart.sync_with_catalog(catalog)
    if dropped:
        logger.info("Dropped unavailable products %s from a cart of store %s", dropped, store_id)
    return dropped


def create_order(db: Session, payload: OrderPayload) -> Order:
    """Record an order from its cart snapshot. Commits on success.

    Names and prices are taken from the store's active catalog, never from
    the payload; the payload total must match the catalog total.
    """
    store = db.get(Store, payload.store_id)
    if not store:
        raise OrderRejectedError("Store not found")
    if not payload.items:
        raise OrderRejectedError("Order must contain items")
    if payload.customer_mode not in {m.value for m in FulfillmentMode}:
        raise OrderRejectedError(f"Unknown fulfillment mode: {payload.customer_mode}")
    if payload.payment_method and payload.payment_method not in {p.value for p in PaymentMethod}:
        raise OrderRejectedError(f"Unknown payment method: {payload.payment_method}")
    if payload.customer_mode == FulfillmentMode.DELIVERY.value and not payload.address:
        raise OrderRejectedError("Delivery orders need an address")

    catalog = load_active_products(db, store.id, (item.product_id for item in payload.items))
    missing = {item.product_id for item in payload.items} - set(catalog)
    if missing:
        raise OrderRejectedError(f"Products not available in this store: {sorted(missing)}")

    lines = [(catalog[item.product_id], item.quantity) for item in payload.items]
    total = sum((quantize_money(product.price) * quantity for product, quantity in lines), Decimal("0.00"))
    if total != quantize_money(payload.total):
        raise OrderRejectedError(f"Total mismatch: expected {total}, got {payload.total}")

    order = Order(
        store_id=store.id,
        total=total,
        customer_name=payload.customer_name.strip(),
        customer_mode=payload.customer_mode,
        payment_method=payload.payment_method,
        address=payload.address.model_dump() if payload.address else None,
        customer_notes=payload.customer_notes,
        user_agent=payload.user_agent,
        created_at_client=_naive_utc(payload.created_at_client),
        status="pending",
    )
    order.items = [
        OrderItem(
            product_id=product.id,
            name=product.name,
            quantity=quantity,
            unit_price=quantize_money(product.price),
            total=quantize_money(product.price) * quantity,
        )
        for product, quantity in lines
    ]
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Order %s recorded for store %s (total %s)", order.id, store.id, total)
    return order


def submit_order(payload: OrderPayload) -> Optional[int]:
    """Persistence channel of a checkout dispatch.

    Returns the new order id, or None when the backend rejected the order or
    the write failed. Anything else propagates to the caller.
    """
    try:
        with db_session() as db:
            return create_order(db, payload).id
    except OrderRejectedError as e:
        logger.warning("create_order rejected for store %s: %s", payload.store_id, e)
    except SQLAlchemyError:
        logger.exception("create_order failed for store %s", payload.store_id)
    return None
