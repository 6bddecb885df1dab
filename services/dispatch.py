"""Checkout dispatch over two independent channels.

1. The WhatsApp deep link is opened synchronously, while the request that
   triggered the checkout is still being handled.
2. The order payload is handed to a scheduler and persisted later (Celery
   worker or post-response background task). Its outcome is written to the
   dispatch status store.

The visitor's cart is emptied as soon as both channels have been engaged, so
the checkout is over for the customer before the order is recorded. Neither
channel waits for or rolls back the other. Failed writes are reported and
never retried.
"""
import json
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol
from urllib.parse import quote

from core.config import settings
from core.logging import get_logger
from schemas.order import OrderPayload
from services.cart import CartStore
from services.checkout import ComposedOrder
from services.phone import normalize_phone

logger = get_logger(__name__)

DISPATCH_PREFIX = "dispatch:"


class DispatchState(str, Enum):
    PENDING = "pending"
    REGISTERED = "registered"
    NOT_RECORDED = "not_recorded"
    FAILED = "failed"

    @property
    def message(self) -> str:
        return _STATE_MESSAGES[self]


_STATE_MESSAGES = {
    DispatchState.PENDING: "Enviando pedido...",
    DispatchState.REGISTERED: "Pedido registrado e enviado com sucesso!",
    DispatchState.NOT_RECORDED: "Pedido enviado pelo WhatsApp, mas falhou no sistema.",
    DispatchState.FAILED: "Erro ao registrar o pedido.",
}


def build_contact_link(phone: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """``<base>/<digits>``, or None when the number has no digits."""
    digits = normalize_phone(phone)
    if not digits:
        return None
    return f"{(base_url or settings.WHATSAPP_BASE_URL).rstrip('/')}/{digits}"


def build_whatsapp_link(phone: Optional[str], message: str, base_url: Optional[str] = None) -> Optional[str]:
    """Deep link that opens a chat with ``message`` prefilled."""
    link = build_contact_link(phone, base_url)
    if not link:
        return None
    return f"{link}?text={quote(message, safe='')}"


class Navigator(Protocol):
    def open(self, url: str) -> bool:
        """Navigate directly; False when the mechanism is blocked or unavailable."""

    def open_via_link(self, url: str) -> None:
        """Fallback: hand the client a link to invoke."""


class Tracker(Protocol):
    def start(self, job: "DispatchJob") -> None: ...

    def finish(self, job: "DispatchJob", state: DispatchState, order_id: Optional[int] = None) -> None: ...


@dataclass
class DispatchJob:
    ticket_id: str
    store_id: str
    cart_session: str
    payload: Dict[str, Any]

    @classmethod
    def create(cls, order: ComposedOrder, cart_session: str) -> "DispatchJob":
        return cls(
            ticket_id=uuid.uuid4().hex,
            store_id=order.payload.store_id,
            cart_session=cart_session,
            payload=order.payload.model_dump(mode="json"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DispatchJob":
        return cls(**data)


@dataclass
class DispatchResult:
    ticket_id: str
    whatsapp_url: Optional[str]
    navigated: bool


class DispatchCoordinator:
    def __init__(
        self,
        navigator: Navigator,
        schedule: Callable[[DispatchJob], None],
        tracker: Tracker,
        carts: Optional[CartStore] = None,
    ):
        self.navigator = navigator
        self.schedule = schedule
        self.tracker = tracker
        self.carts = carts

    def dispatch(self, order: ComposedOrder, whatsapp: Optional[str], cart_session: str) -> DispatchResult:
        job = DispatchJob.create(order, cart_session)
        self.tracker.start(job)

        url = build_whatsapp_link(whatsapp, order.message) if whatsapp else None
        navigated = self._navigate(url) if url else False

        try:
            self.schedule(job)
        except Exception:
            logger.exception("Could not schedule order submission %s", job.ticket_id)
            self.tracker.finish(job, DispatchState.FAILED)

        if self.carts is not None:
            self.carts.clear(job.store_id, job.cart_session)
        return DispatchResult(ticket_id=job.ticket_id, whatsapp_url=url, navigated=navigated)

    def _navigate(self, url: str) -> bool:
        try:
            if self.navigator.open(url):
                return True
        except Exception:
            logger.warning("Direct navigation to WhatsApp failed, using link fallback", exc_info=True)
        try:
            self.navigator.open_via_link(url)
            return True
        except Exception:
            logger.exception("Could not open WhatsApp link")
            return False


def run_dispatch_job(
    job: DispatchJob,
    submit: Callable[[OrderPayload], Optional[int]],
    tracker: Tracker,
) -> DispatchState:
    """Persistence half of a dispatch. Always finishes the ticket."""
    state, order_id = DispatchState.FAILED, None
    try:
        order_id = submit(OrderPayload.model_validate(job.payload))
        state = DispatchState.REGISTERED if order_id else DispatchState.NOT_RECORDED
    except Exception:
        logger.exception("Unexpected error while recording order %s", job.ticket_id)
    finally:
        tracker.finish(job, state, order_id)
    return state


class DispatchTracker:
    """Ticket status in Redis. The ticket is the only thing a finished job touches."""

    def __init__(self, client, ttl_seconds: Optional[int] = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.DISPATCH_STATUS_TTL_SECONDS

    @staticmethod
    def key(ticket_id: str) -> str:
        return f"{DISPATCH_PREFIX}{ticket_id}"

    def _write(self, job: DispatchJob, state: DispatchState, order_id: Optional[int]) -> None:
        data = {
            "ticket_id": job.ticket_id,
            "store_id": job.store_id,
            "state": state.value,
            "message": state.message,
            "order_id": order_id,
        }
        self.client.setex(self.key(job.ticket_id), self.ttl_seconds, json.dumps(data))

    def start(self, job: DispatchJob) -> None:
        self._write(job, DispatchState.PENDING, None)

    def finish(self, job: DispatchJob, state: DispatchState, order_id: Optional[int] = None) -> None:
        self._write(job, state, order_id)
        logger.info("Dispatch %s finished: %s", job.ticket_id, state.value)

    def status(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        raw = self.client.get(self.key(ticket_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            self.client.delete(self.key(ticket_id))
            return None
