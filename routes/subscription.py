from fastapi import APIRouter, Depends

from models.user import User
from routes.auth import get_current_user
from schemas.subscription import SubscriptionStatusOut
from services.access import days_left_in_trial, is_allowed, is_in_trial, is_paid_active

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/", response_model=SubscriptionStatusOut)
def subscription_status(current_user: User = Depends(get_current_user)):
    """Not gated: blocked owners need to see why."""
    subscription = current_user.subscription
    return SubscriptionStatusOut(
        allowed=is_allowed(subscription),
        in_trial=is_in_trial(subscription),
        paid_active=is_paid_active(subscription),
        days_left=max(0, days_left_in_trial(subscription)),
        trial_end=subscription.trial_end if subscription else None,
        paid_until=subscription.paid_until if subscription else None,
    )
