from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.logging import get_logger
from models.product import Product
from models.store import Store
from services.access import is_allowed

logger = get_logger(__name__)

FALLBACK_CATEGORY = "Outros"


class MenuState(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass
class MenuView:
    state: MenuState
    store: Optional[Store] = None
    categories: Dict[str, List[Product]] = field(default_factory=dict)

    @property
    def product_count(self) -> int:
        return sum(len(items) for items in self.categories.values())


def fetch_active_products(db: Session, store_id: str) -> List[Product]:
    # Uncategorized products sort last on every backend
    return (
        db.query(Product)
        .filter(Product.store_id == store_id, Product.active.is_(True))
        .order_by(Product.category.is_(None), Product.category.asc(), Product.name.asc())
        .all()
    )


def group_by_category(products: Iterable[Product]) -> Dict[str, List[Product]]:
    grouped: Dict[str, List[Product]] = {}
    for product in products:
        grouped.setdefault(product.category or FALLBACK_CATEGORY, []).append(product)
    return grouped


def load_menu(db: Session, store_id: str, gate: Callable[[Any], bool] = is_allowed) -> MenuView:
    """Public menu of a store: not found, unavailable (access window closed) or grouped products."""
    store = db.get(Store, store_id)
    if not store:
        return MenuView(state=MenuState.NOT_FOUND)
    if not gate(store.owner_subscription):
        logger.info("Menu of store %s is unavailable: subscription window closed", store_id)
        return MenuView(state=MenuState.UNAVAILABLE, store=store)
    return MenuView(state=MenuState.OK, store=store, categories=group_by_category(fetch_active_products(db, store.id)))
