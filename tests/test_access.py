from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from services.access import (
    SubscriptionWindow,
    days_left_in_trial,
    is_allowed,
    is_in_trial,
    is_paid_active,
)

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def window(**kwargs):
    return SubscriptionWindow(**kwargs)


class TestIsAllowed:
    """Access window evaluation"""

    def test_missing_record_is_allowed(self):
        assert is_allowed(None, now=NOW) is True

    def test_empty_window_is_allowed(self):
        assert is_allowed(window(), now=NOW) is True

    def test_active_trial(self):
        assert is_allowed(window(trial_end=NOW + timedelta(days=3)), now=NOW) is True

    def test_trial_end_is_inclusive(self):
        assert is_allowed(window(trial_end=NOW), now=NOW) is True
        assert is_allowed(window(trial_end=NOW - timedelta(seconds=1)), now=NOW) is False

    def test_paid_until_is_inclusive(self):
        assert is_allowed(window(is_paid=True, paid_until=NOW), now=NOW) is True
        assert is_allowed(window(is_paid=True, paid_until=NOW - timedelta(seconds=1)), now=NOW) is False

    def test_paid_until_without_is_paid_does_not_count(self):
        w = window(trial_end=NOW - timedelta(days=1), is_paid=False, paid_until=NOW + timedelta(days=30))
        assert is_allowed(w, now=NOW) is False

    def test_is_paid_without_paid_until_is_denied(self):
        assert is_allowed(window(is_paid=True), now=NOW) is False

    def test_paid_after_expired_trial(self):
        w = window(trial_end=NOW - timedelta(days=10), is_paid=True, paid_until=NOW + timedelta(days=365))
        assert is_allowed(w, now=NOW) is True

    def test_naive_timestamps_are_utc(self):
        naive_end = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert is_allowed(SimpleNamespace(trial_start=None, trial_end=naive_end, is_paid=False, paid_until=None), now=NOW)

    def test_dict_record_with_iso_strings(self):
        record = {"trial_end": "2024-05-10T11:00:00Z", "is_paid": True, "paid_until": "2025-05-10T00:00:00+00:00"}
        assert is_allowed(record, now=NOW) is True
        assert is_in_trial(record, now=NOW) is False
        assert is_paid_active(record, now=NOW) is True


class TestTrialHelpers:
    """Trial and paid-period helpers"""

    def test_is_in_trial_without_trial(self):
        assert is_in_trial(window(), now=NOW) is False

    def test_days_left_rounds_up(self):
        assert days_left_in_trial(window(trial_end=NOW + timedelta(days=2, hours=1)), now=NOW) == 3
        assert days_left_in_trial(window(trial_end=NOW + timedelta(days=7)), now=NOW) == 7

    def test_days_left_negative_after_trial(self):
        assert days_left_in_trial(window(trial_end=NOW - timedelta(days=2)), now=NOW) == -2

    def test_days_left_without_trial(self):
        assert days_left_in_trial(None, now=NOW) == 0
