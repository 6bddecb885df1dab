import json
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from core.config import settings
from core.logging import get_logger

logger = get_logger(__name__)

CART_PREFIX = "cart:"


class CartError(Exception):
    """A cart operation referenced a product the storefront does not offer."""


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class CartProduct:
    """Product data captured when it is added to the cart."""

    id: int
    name: str
    price: Decimal
    image_url: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_product(cls, product: Any) -> "CartProduct":
        if isinstance(product, cls):
            return product
        return cls(
            id=product.id,
            name=product.name,
            price=to_decimal(product.price),
            image_url=getattr(product, "image_url", None),
            category=getattr(product, "category", None),
        )


@dataclass
class CartLine:
    product: CartProduct
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.product.price * self.quantity


class Cart:
    """Ordered cart lines keyed by product id.

    Invariants: at most one line per product, every quantity is >= 1.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: Dict[int, CartLine] = {}
        for line in lines or []:
            if line.quantity > 0:
                self._lines[line.product.id] = line

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int) -> Optional[CartLine]:
        return self._lines.get(product_id)

    def add_item(self, product: Any) -> CartLine:
        if getattr(product, "active", True) is False:
            raise CartError(f"Product {product.id} is not available")
        snapshot = CartProduct.from_product(product)
        line = self._lines.get(snapshot.id)
        if line:
            line.quantity += 1
        else:
            line = CartLine(product=snapshot, quantity=1)
            self._lines[snapshot.id] = line
        return line

    def update_quantity(self, product_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        line = self._lines.get(product_id)
        if line:
            line.quantity = quantity

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def sync_with_catalog(self, products: Dict[int, Any]) -> List[int]:
        """Refresh every line from ``products`` (product id -> current product).

        Lines whose product is missing or inactive are dropped and their ids
        returned. Quantities and line order are kept.
        """
        dropped = []
        for product_id, line in list(self._lines.items()):
            product = products.get(product_id)
            if product is None or getattr(product, "active", True) is False:
                del self._lines[product_id]
                dropped.append(product_id)
                continue
            line.product = CartProduct.from_product(product)
        return dropped

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines.values()), Decimal("0.00"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lines": [
                {**asdict(line.product), "price": str(line.product.price), "quantity": line.quantity}
                for line in self._lines.values()
            ]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cart":
        lines = []
        for raw in data.get("lines", []):
            product = CartProduct(
                id=int(raw["id"]),
                name=raw["name"],
                price=to_decimal(raw["price"]),
                image_url=raw.get("image_url"),
                category=raw.get("category"),
            )
            lines.append(CartLine(product=product, quantity=int(raw["quantity"])))
        return cls(lines)


class CartStore:
    """Keeps one cart per storefront visit (store id + visitor session) in Redis."""

    def __init__(self, client, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.CART_TTL_SECONDS

    @staticmethod
    def key(store_id: str, session_id: str) -> str:
        return f"{CART_PREFIX}{store_id}:{session_id}"

    def load(self, store_id: str, session_id: str) -> Cart:
        raw = self.client.get(self.key(store_id, session_id))
        if not raw:
            return Cart()
        try:
            return Cart.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, InvalidOperation):
            # Corrupted data - start over with an empty cart
            logger.warning("Discarding unreadable cart %s", self.key(store_id, session_id))
            self.client.delete(self.key(store_id, session_id))
            return Cart()

    def save(self, store_id: str, session_id: str, cart: Cart) -> None:
        if cart.is_empty():
            self.clear(store_id, session_id)
            return
        self.client.setex(self.key(store_id, session_id), self.ttl_seconds, json.dumps(cart.to_dict()))

    def clear(self, store_id: str, session_id: str) -> None:
        self.client.delete(self.key(store_id, session_id))
