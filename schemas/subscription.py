from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class SubscriptionStatusOut(BaseModel):
    allowed: bool
    in_trial: bool
    paid_active: bool
    days_left: int
    trial_end: Optional[datetime] = None
    paid_until: Optional[datetime] = None
