"""
talentmatch/features/usage/ledger.py

Daily usage ledger.

Handles:
- Calendar-day windowing (full UTC date, not a rolling 24h)
- Admission check against the plan quota
- Commit arithmetic for an admitted request

Everything here is pure: callers persist the returned UsageUpdate.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from talentmatch.features.plans.catalog import format_quota, is_unlimited, normalize_plan, quota_for
from talentmatch.models.user import User


QUOTA_MESSAGE = (
    "You have reached your {plan} plan limit of {quota} analyses per day. "
    "Please upgrade to continue."
)


@dataclass(frozen=True)
class UsageDecision:
    admitted: bool
    effective_count: int
    quota: int
    plan: str
    new_window: bool


@dataclass(frozen=True)
class UsageUpdate:
    usage_count: int
    usage_reset_date: datetime


@dataclass(frozen=True)
class QuotaRejection:
    plan: str
    quota: int
    quota_label: str
    usage_count: int
    message: str


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_new_window(reset_date: Optional[datetime], now: datetime) -> bool:
    """
    True when `now` falls on a later UTC calendar date than `reset_date`.

    A `now` earlier than `reset_date` (clock skew) stays in the same window.
    """
    if reset_date is None:
        return True
    return _as_utc(now).date() > _as_utc(reset_date).date()


def check_and_window(user: User, now: datetime, pending: int = 0) -> UsageDecision:
    """
    Decide whether `user` may run one more analysis at `now`.

    `pending` counts admitted requests that have not committed yet.
    """
    plan = normalize_plan(user.plan)
    quota = quota_for(plan)
    new_window = is_new_window(user.usage_reset_date, now)
    effective = 0 if new_window else max(user.usage_count, 0)

    if is_unlimited(quota):
        admitted = True
    else:
        admitted = effective + max(pending, 0) < quota

    return UsageDecision(
        admitted=admitted,
        effective_count=effective,
        quota=quota,
        plan=plan,
        new_window=new_window,
    )


def commit(user: User, now: datetime) -> UsageUpdate:
    if is_new_window(user.usage_reset_date, now):
        return UsageUpdate(usage_count=1, usage_reset_date=_as_utc(now))
    return UsageUpdate(usage_count=max(user.usage_count, 0) + 1, usage_reset_date=_as_utc(user.usage_reset_date))


def build_rejection(decision: UsageDecision) -> QuotaRejection:
    label = format_quota(decision.quota)
    return QuotaRejection(
        plan=decision.plan,
        quota=decision.quota,
        quota_label=label,
        usage_count=decision.effective_count,
        message=QUOTA_MESSAGE.format(plan=decision.plan, quota=label),
    )
