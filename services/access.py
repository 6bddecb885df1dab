"""Subscription access window evaluation.

Every gate in the application (admin routes, the public menu, the
``check_store_status`` procedure) goes through :func:`is_allowed`.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

_DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class SubscriptionWindow:
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    is_paid: bool = False
    paid_until: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Any) -> "SubscriptionWindow":
        """Build a window from an ORM row, a mapping or ``None`` (never provisioned)."""
        if record is None:
            return cls()
        if isinstance(record, cls):
            return record
        get = record.get if isinstance(record, dict) else lambda key: getattr(record, key, None)
        return cls(
            trial_start=_as_utc(get("trial_start")),
            trial_end=_as_utc(get("trial_end")),
            is_paid=bool(get("is_paid")),
            paid_until=_as_utc(get("paid_until")),
        )

    @property
    def never_provisioned(self) -> bool:
        return self.trial_end is None and self.paid_until is None and not self.is_paid


def _as_utc(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now(now: Optional[datetime]) -> datetime:
    return _as_utc(now) if now is not None else datetime.now(timezone.utc)


def is_in_trial(record: Any, now: Optional[datetime] = None) -> bool:
    window = SubscriptionWindow.from_record(record)
    if window.trial_end is None:
        return False
    return _now(now) <= window.trial_end


def is_paid_active(record: Any, now: Optional[datetime] = None) -> bool:
    window = SubscriptionWindow.from_record(record)
    if not window.is_paid or window.paid_until is None:
        return False
    return _now(now) <= window.paid_until


def is_allowed(record: Any, now: Optional[datetime] = None) -> bool:
    """Whether an account (and its store) may be used at ``now``.

    A window with no data at all is allowed: the subscription row is created
    asynchronously and accounts must not be locked out before it exists.
    Both ends are inclusive.
    """
    window = SubscriptionWindow.from_record(record)
    if window.never_provisioned:
        return True
    return is_in_trial(window, now) or is_paid_active(window, now)


def days_left_in_trial(record: Any, now: Optional[datetime] = None) -> int:
    """Whole days until the trial ends, rounded up. May be negative; 0 without a trial."""
    window = SubscriptionWindow.from_record(record)
    if window.trial_end is None:
        return 0
    remaining = (window.trial_end - _now(now)).total_seconds()
    return math.ceil(remaining / _DAY_SECONDS)
