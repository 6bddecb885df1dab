from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest

from schemas.checkout import AddressIn, CheckoutRequest
from services.cart import Cart, CartStore
from services.checkout import compose_order
from services.dispatch import (
    DispatchCoordinator,
    DispatchJob,
    DispatchState,
    DispatchTracker,
    build_contact_link,
    build_whatsapp_link,
    run_dispatch_job,
)


def product(pid, name, price):
    return SimpleNamespace(id=pid, name=name, price=Decimal(price), image_url=None, category=None)


@pytest.fixture
def cart():
    c = Cart()
    c.add_item(product(1, "Burger", "10.00"))
    c.add_item(product(1, "Burger", "10.00"))
    return c


@pytest.fixture
def order(cart):
    form = CheckoutRequest(
        name="Ana",
        mode="entrega",
        payment_method="pix",
        address=AddressIn(street="Rua A", number="10", neighborhood="Centro"),
    )
    return compose_order("store-1", cart, form, now=datetime(2024, 5, 10, tzinfo=timezone.utc))


class RecordingNavigator:
    def __init__(self, direct_ok=True, direct_error=None):
        self.direct_ok = direct_ok
        self.direct_error = direct_error
        self.opened = []
        self.linked = []

    def open(self, url):
        if self.direct_error:
            raise self.direct_error
        if self.direct_ok:
            self.opened.append(url)
        return self.direct_ok

    def open_via_link(self, url):
        self.linked.append(url)


class TestWhatsappLink:
    def test_link_has_normalized_number_and_encoded_text(self):
        url = build_whatsapp_link("(11) 98765-4321", "Olá & tchau\n*Total:* R$ 10,00")
        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}" == "https://wa.me"
        assert parsed.path == "/5511987654321"
        assert "+" not in parsed.query
        assert parse_qs(parsed.query)["text"] == ["Olá & tchau\n*Total:* R$ 10,00"]

    def test_no_digits_no_link(self):
        assert build_whatsapp_link("", "hi") is None
        assert build_whatsapp_link(None, "hi") is None
        assert build_contact_link("n/a") is None

    def test_custom_base_url(self):
        assert build_contact_link("11987654321", base_url="https://api.whatsapp.com/") == "https://api.whatsapp.com/5511987654321"


class TestDispatchCoordinator:
    """Navigation and persistence are independent"""

    def test_direct_navigation_then_schedule(self, order):
        navigator = RecordingNavigator()
        calls = []
        tracker = Mock()
        tracker.start.side_effect = lambda job: calls.append("start")
        coordinator = DispatchCoordinator(navigator, schedule=lambda job: calls.append(("schedule", job)), tracker=tracker)

        result = coordinator.dispatch(order, "(11) 98765-4321", "visit-1")

        assert result.navigated is True
        assert navigator.opened == [result.whatsapp_url]
        assert navigator.linked == []
        assert result.whatsapp_url.startswith("https://wa.me/5511987654321?text=")
        assert calls[0] == "start"
        job = calls[1][1]
        assert job.ticket_id == result.ticket_id
        assert job.cart_session == "visit-1"
        assert job.payload["store_id"] == "store-1"
        tracker.finish.assert_not_called()

    def test_blocked_navigation_falls_back_to_link(self, order):
        navigator = RecordingNavigator(direct_ok=False)
        coordinator = DispatchCoordinator(navigator, schedule=Mock(), tracker=Mock())
        result = coordinator.dispatch(order, "11987654321", "visit-1")
        assert navigator.linked == [result.whatsapp_url]
        assert result.navigated is True

    def test_navigation_error_does_not_stop_persistence(self, order):
        navigator = RecordingNavigator(direct_error=RuntimeError("popup blocked"))
        schedule = Mock()
        coordinator = DispatchCoordinator(navigator, schedule=schedule, tracker=Mock())
        coordinator.dispatch(order, "11987654321", "visit-1")
        assert len(navigator.linked) == 1
        schedule.assert_called_once()

    def test_no_whatsapp_number_still_schedules(self, order):
        navigator = RecordingNavigator()
        schedule = Mock()
        result = DispatchCoordinator(navigator, schedule=schedule, tracker=Mock()).dispatch(order, None, "visit-1")
        assert result.whatsapp_url is None
        assert result.navigated is False
        assert navigator.opened == [] and navigator.linked == []
        schedule.assert_called_once()

    def test_scheduling_failure_finishes_ticket_as_failed(self, order):
        tracker = Mock()
        coordinator = DispatchCoordinator(
            RecordingNavigator(), schedule=Mock(side_effect=RuntimeError("queue down")), tracker=tracker
        )
        result = coordinator.dispatch(order, "11987654321", "visit-1")
        assert result.navigated is True
        job, state = tracker.finish.call_args[0]
        assert job.ticket_id == result.ticket_id
        assert state is DispatchState.FAILED


class TestRunDispatchJob:
    """Persistence outcome and completion"""

    def _job(self, order):
        return DispatchJob.create(order, "visit-1")

    def test_registered(self, order):
        tracker = Mock()
        submit = Mock(return_value=42)
        job = self._job(order)
        assert run_dispatch_job(job, submit, tracker) is DispatchState.REGISTERED
        submitted = submit.call_args[0][0]
        assert submitted.total == Decimal("20.00")
        assert submitted.address.street == "Rua A"
        tracker.finish.assert_called_once_with(job, DispatchState.REGISTERED, 42)

    def test_not_recorded(self, order):
        tracker = Mock()
        assert run_dispatch_job(self._job(order), Mock(return_value=None), tracker) is DispatchState.NOT_RECORDED
        assert tracker.finish.call_args[0][1] is DispatchState.NOT_RECORDED

    def test_unexpected_error(self, order):
        tracker = Mock()
        state = run_dispatch_job(self._job(order), Mock(side_effect=ValueError("boom")), tracker)
        assert state is DispatchState.FAILED
        tracker.finish.assert_called_once()

    def test_job_round_trips_through_dict(self, order):
        job = self._job(order)
        assert DispatchJob.from_dict(job.to_dict()) == job


class TestDispatchTracker:
    """Ticket status"""

    def test_start_then_finish(self, order, fake_redis):
        tracker = DispatchTracker(fake_redis)
        job = DispatchJob.create(order, "visit-1")

        tracker.start(job)
        assert tracker.status(job.ticket_id)["state"] == "pending"
        assert tracker.status(job.ticket_id)["message"] == "Enviando pedido..."

        tracker.finish(job, DispatchState.REGISTERED, 7)
        status = tracker.status(job.ticket_id)
        assert status["state"] == "registered"
        assert status["message"] == "Pedido registrado e enviado com sucesso!"
        assert status["order_id"] == 7

    def test_failed_write_is_reported(self, order, fake_redis):
        tracker = DispatchTracker(fake_redis)
        job = DispatchJob.create(order, "visit-1")
        run_dispatch_job(job, Mock(return_value=None), tracker)
        assert tracker.status(job.ticket_id)["message"] == "Pedido enviado pelo WhatsApp, mas falhou no sistema."

    def test_unknown_ticket(self, fake_redis):
        assert DispatchTracker(fake_redis).status("nope") is None

    def test_unreadable_ticket_is_dropped(self, fake_redis):
        fake_redis.setex(DispatchTracker.key("t1"), 60, "garbage")
        assert DispatchTracker(fake_redis).status("t1") is None
        assert fake_redis.exists(DispatchTracker.key("t1")) == 0


class TestCartClearing:
    """The cart is emptied by the checkout itself, not by the queued job"""

    def _coordinator(self, fake_redis, carts, schedule):
        return DispatchCoordinator(RecordingNavigator(), schedule=schedule, tracker=DispatchTracker(fake_redis), carts=carts)

    def test_cart_is_empty_when_dispatch_returns(self, order, cart, fake_redis):
        carts = CartStore(fake_redis)
        carts.save("store-1", "visit-1", cart)
        queued = []

        self._coordinator(fake_redis, carts, queued.append).dispatch(order, "11987654321", "visit-1")

        assert len(queued) == 1
        assert carts.load("store-1", "visit-1").is_empty()

    def test_scheduling_failure_still_empties_cart(self, order, cart, fake_redis):
        carts = CartStore(fake_redis)
        carts.save("store-1", "visit-1", cart)
        self._coordinator(fake_redis, carts, Mock(side_effect=RuntimeError("queue down"))).dispatch(
            order, "11987654321", "visit-1"
        )
        assert carts.load("store-1", "visit-1").is_empty()

    def test_late_job_keeps_the_next_cart(self, order, cart, fake_redis):
        carts = CartStore(fake_redis)
        carts.save("store-1", "visit-1", cart)
        queued = []
        tracker = DispatchTracker(fake_redis)
        DispatchCoordinator(RecordingNavigator(), schedule=queued.append, tracker=tracker, carts=carts).dispatch(
            order, "11987654321", "visit-1"
        )

        next_cart = Cart()
        next_cart.add_item(product(3, "Soda", "6.00"))
        carts.save("store-1", "visit-1", next_cart)

        run_dispatch_job(queued[0], Mock(return_value=9), tracker)

        assert [line.product.name for line in carts.load("store-1", "visit-1").lines] == ["Soda"]
        assert tracker.status(queued[0].ticket_id)["state"] == "registered"
