"""
talentmatch/features/plans/catalog.py

Static plan catalog.

Handles:
- Plan id -> daily analysis quota (-1 means unlimited)
- Stripe price id <-> plan mapping
- Quota rendering for user-facing messages
"""

from dataclasses import dataclass
from typing import Dict, Optional

from talentmatch.core.config import settings


UNLIMITED = -1

FREE = "free"
STARTER = "starter"
PRO = "pro"


@dataclass(frozen=True)
class PlanEntry:
    plan_id: str
    name: str
    daily_quota: int
    price_setting: Optional[str] = None


PLAN_CATALOG: Dict[str, PlanEntry] = {
    FREE: PlanEntry(plan_id=FREE, name="Free", daily_quota=3),
    STARTER: PlanEntry(plan_id=STARTER, name="Starter", daily_quota=50, price_setting="STRIPE_STARTER_PRICE_ID"),
    PRO: PlanEntry(plan_id=PRO, name="Pro", daily_quota=UNLIMITED, price_setting="STRIPE_PRO_PRICE_ID"),
}


def normalize_plan(plan: Optional[str]) -> str:
    """Return a known plan id; anything unrecognized is treated as free."""
    if not plan:
        return FREE
    key = str(plan).strip().lower()
    return key if key in PLAN_CATALOG else FREE


def get_plan(plan: Optional[str]) -> PlanEntry:
    return PLAN_CATALOG[normalize_plan(plan)]


def quota_for(plan: Optional[str]) -> int:
    """
    Daily analysis quota for a plan.

    Unknown, empty or None plans resolve to the free quota so a corrupted
    plan value can never grant more than the free tier.
    """
    return get_plan(plan).daily_quota


def is_unlimited(quota: int) -> bool:
    return quota == UNLIMITED


def format_quota(quota: int) -> str:
    return "unlimited" if is_unlimited(quota) else str(quota)


def price_for_plan(plan: Optional[str], settings_obj=None) -> Optional[str]:
    cfg = settings_obj or settings
    entry = get_plan(plan)
    if not entry.price_setting:
        return None
    return getattr(cfg, entry.price_setting, None) or None


def plan_for_price(price_id: Optional[str], settings_obj=None) -> str:
    """Map a Stripe price id back to a plan; unknown prices land on free."""
    if not price_id:
        return FREE
    cfg = settings_obj or settings
    for entry in PLAN_CATALOG.values():
        if entry.price_setting and getattr(cfg, entry.price_setting, None) == price_id:
            return entry.plan_id
    return FREE
