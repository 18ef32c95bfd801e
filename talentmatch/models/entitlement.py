"""
talentmatch/models/entitlement.py

Normalized plan-change notification produced by the billing provider.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class EntitlementChangeEvent(BaseModel):
    """
    A plan/status change for one user.

    The subject is resolved by `user_id`, then `stripe_customer_id`,
    then `email`. A cancellation always lands on free/cancelled whatever
    `plan` and `status` say.
    """
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None
    event_type: Optional[str] = None
    user_id: Optional[int] = None
    stripe_customer_id: Optional[str] = None
    email: Optional[str] = None
    plan: str = "free"
    status: str = "active"
    cancellation: bool = False


class EntitlementChangeStatus(str, Enum):
    APPLIED = "applied"
    UNRESOLVED = "unresolved"
    DUPLICATE = "duplicate"


class EntitlementChangeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: EntitlementChangeStatus
    user_id: Optional[int] = None
    plan: Optional[str] = None
    subscription_status: Optional[str] = None
