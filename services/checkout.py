"""Checkout composition: validates the customer form and turns a cart into an
order payload plus the WhatsApp message sent to the store."""
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from schemas.order import DeliveryAddress, OrderItemSnapshot, OrderPayload
from services.cart import Cart, to_decimal

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
NOTES_MAX_LENGTH = 500

# Plain-text templates must not be HTML escaped
_templates_env = Environment(
    loader=FileSystemLoader(searchpath=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


class FulfillmentMode(str, Enum):
    ON_PREMISE = "local"
    PICKUP = "retirada"
    DELIVERY = "entrega"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    FulfillmentMode.ON_PREMISE: "Consumo no Local",
    FulfillmentMode.PICKUP: "Retirada",
    FulfillmentMode.DELIVERY: "Entrega",
}


class PaymentMethod(str, Enum):
    PIX = "pix"
    CARD = "cartao"
    CASH = "dinheiro"

    @property
    def label(self) -> str:
        return _PAYMENT_LABELS[self]


_PAYMENT_LABELS = {
    PaymentMethod.PIX: "Pix",
    PaymentMethod.CARD: "Cartão",
    PaymentMethod.CASH: "Dinheiro",
}

_ADDRESS_FIELDS = (
    ("street", "Rua é obrigatória"),
    ("number", "Número é obrigatório"),
    ("neighborhood", "Bairro é obrigatório"),
)


class CheckoutValidationError(Exception):
    def __init__(self, errors: Dict[str, str]):
        super().__init__("Invalid checkout form")
        self.errors = errors


@dataclass
class ComposedOrder:
    payload: OrderPayload
    message: str

    @property
    def total(self) -> Decimal:
        return self.payload.total


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_brl(value: Any) -> str:
    """Format an amount the pt-BR way: ``R$ 1.234,56``."""
    amount = quantize_money(value)
    integer, _, cents = f"{abs(amount):,.2f}".partition(".")
    text = f"R$ {integer.replace(',', '.')},{cents}"
    return f"-{text}" if amount < 0 else text


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def validate_checkout(form: Any, cart: Cart) -> Dict[str, str]:
    """Return a field -> message mapping; empty when the form is acceptable."""
    errors: Dict[str, str] = {}

    name = _clean(form.name)
    if len(name) < NAME_MIN_LENGTH:
        errors["name"] = "Nome deve ter pelo menos 2 caracteres"
    elif len(name) > NAME_MAX_LENGTH:
        errors["name"] = "Nome deve ter no máximo 100 caracteres"

    modes = {m.value for m in FulfillmentMode}
    if form.mode not in modes:
        errors["mode"] = "Selecione como deseja receber o pedido"

    if not form.payment_method:
        errors["payment_method"] = "Selecione a forma de pagamento"
    elif form.payment_method not in {p.value for p in PaymentMethod}:
        errors["payment_method"] = "Forma de pagamento inválida"

    if form.mode == FulfillmentMode.DELIVERY.value:
        address = form.address
        for field, message in _ADDRESS_FIELDS:
            if not _clean(getattr(address, field, None)):
                errors[f"address.{field}"] = message

    if form.notes and len(form.notes) > NOTES_MAX_LENGTH:
        errors["notes"] = "Observação deve ter no máximo 500 caracteres"

    if cart.is_empty():
        errors["cart"] = "Carrinho vazio"

    return errors


def render_order_message(payload: OrderPayload) -> str:
    mode = FulfillmentMode(payload.customer_mode)
    payment_label = PaymentMethod(payload.payment_method).label if payload.payment_method else None
    items = [
        {
            "quantity": item.quantity,
            "name": item.name,
            "subtotal": format_brl(item.unit_price * item.quantity),
        }
        for item in payload.items
    ]
    template = _templates_env.get_template("messages/new_order.txt")
    return template.render(
        customer_name=payload.customer_name,
        mode_label=mode.label,
        payment_label=payment_label,
        address=payload.address.model_dump() if payload.address else None,
        notes=payload.customer_notes,
        items=items,
        total=format_brl(payload.total),
    )


def compose_order(
    store_id: str,
    cart: Cart,
    form: Any,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ComposedOrder:
    """Validate ``form`` against ``cart`` and build the order payload and message.

    Raises CheckoutValidationError with per-field messages when the form is
    rejected. Items keep the cart's line order.
    """
    errors = validate_checkout(form, cart)
    if errors:
        raise CheckoutValidationError(errors)

    mode = FulfillmentMode(form.mode)
    address = None
    if mode is FulfillmentMode.DELIVERY:
        address = DeliveryAddress(
            street=_clean(form.address.street),
            number=_clean(form.address.number),
            neighborhood=_clean(form.address.neighborhood),
            reference=_clean(form.address.reference) or None,
        )

    payload = OrderPayload(
        store_id=store_id,
        items=[
            OrderItemSnapshot(
                product_id=line.product.id,
                name=line.product.name,
                unit_price=quantize_money(line.product.price),
                quantity=line.quantity,
            )
            for line in cart.lines
        ],
        total=quantize_money(cart.total),
        customer_name=_clean(form.name),
        customer_mode=mode.value,
        payment_method=form.payment_method,
        address=address,
        customer_notes=_clean(form.notes) or None,
        user_agent=user_agent,
        created_at_client=now or datetime.now(timezone.utc),
    )
    return ComposedOrder(payload=payload, message=render_order_message(payload))
