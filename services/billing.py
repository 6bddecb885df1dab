from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from core.logging import get_logger
from models.subscription import Subscription
from models.user import User

logger = get_logger(__name__)

# Payment provider events that unlock a paid year
PAID_EVENTS = frozenset({"payment.paid", "invoice.paid", "subscription.activated"})


def add_one_year(value: datetime) -> datetime:
    try:
        return value.replace(year=value.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return value.replace(year=value.year + 1, day=28)


def activate_paid_plan(db: Session, user: User, now: Optional[datetime] = None) -> Subscription:
    """Mark the owner as paid for one year from ``now``; ends any running trial."""
    now = now or datetime.utcnow()
    subscription = user.subscription
    if subscription is None:
        subscription = Subscription(user_id=user.id)
        db.add(subscription)
        user.subscription = subscription
    subscription.is_paid = True
    subscription.paid_until = add_one_year(now)
    subscription.trial_end = None
    db.commit()
    db.refresh(subscription)
    logger.info("Paid plan active for user %s until %s", user.id, subscription.paid_until)
    return subscription
