"""
talentmatch/features/entitlements/service.py

Entitlement updater.

Handles:
- Resolving the subject of a plan change (user id, then customer id, then email)
- Applying plan/status under the same per-user lock as admission
- Dropping replays of provider events already applied

Usage fields are never touched here: a downgrade keeps today's count and
the next admission check compares it against the new quota.
"""

import logging
from typing import Optional

from talentmatch.core.metrics import entitlement_changes_total
from talentmatch.features.plans.catalog import FREE, normalize_plan
from talentmatch.features.storage.base import Stores
from talentmatch.features.usage.locks import UserLockRegistry
from talentmatch.models.entitlement import (
    EntitlementChangeEvent,
    EntitlementChangeResult,
    EntitlementChangeStatus,
)
from talentmatch.models.user import User


logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


def resolve_subject(event: EntitlementChangeEvent, stores: Stores) -> Optional[User]:
    if event.user_id is not None:
        user = stores.users.get_user(event.user_id)
        if user:
            return user
    if event.stripe_customer_id:
        user = stores.users.get_user_by_customer(event.stripe_customer_id)
        if user:
            return user
    if event.email:
        return stores.users.get_user_by_email(event.email)
    return None


def target_entitlement(event: EntitlementChangeEvent) -> tuple:
    """(plan, status) the user should end up with."""
    if event.cancellation:
        return FREE, CANCELLED
    return normalize_plan(event.plan), (event.status or "active")


def apply_entitlement_change(
    event: EntitlementChangeEvent,
    *,
    stores: Stores,
    locks: UserLockRegistry,
) -> EntitlementChangeResult:
    """
    Set a user's plan and subscription status from a billing event.

    Never raises for an unknown subject; the event is logged and dropped.
    """
    if event.event_id:
        # Billing webhooks record the id first (with the payload hash); direct callers get it recorded here
        stores.billing_events.record_event(event.event_id, event.event_type or "entitlement.change", "")
    if event.event_id and stores.billing_events.is_processed(event.event_id):
        logger.info("[entitlements] duplicate event", extra={"event_id": event.event_id})
        entitlement_changes_total.inc({"result": EntitlementChangeStatus.DUPLICATE.value})
        return EntitlementChangeResult(status=EntitlementChangeStatus.DUPLICATE)

    user = resolve_subject(event, stores)
    if user is None:
        logger.warning(
            "[entitlements] UnresolvedEntitlementSubject",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "stripe_customer_id": event.stripe_customer_id,
                "has_email": bool(event.email),
            },
        )
        entitlement_changes_total.inc({"result": EntitlementChangeStatus.UNRESOLVED.value})
        return EntitlementChangeResult(status=EntitlementChangeStatus.UNRESOLVED)

    plan, status = target_entitlement(event)
    fields = {"plan": plan, "subscription_status": status}
    if event.stripe_customer_id and not user.stripe_customer_id:
        fields["stripe_customer_id"] = event.stripe_customer_id

    with locks.hold(user.user_id):
        updated = stores.users.update_user(user.user_id, **fields)

    if event.event_id:
        stores.billing_events.mark_processed(event.event_id)

    logger.info(
        "[entitlements] applied",
        extra={
            "user_id": user.user_id,
            "event_id": event.event_id,
            "previous_plan": user.plan,
            "plan": plan,
            "subscription_status": status,
        },
    )
    entitlement_changes_total.inc({"result": EntitlementChangeStatus.APPLIED.value})
    return EntitlementChangeResult(
        status=EntitlementChangeStatus.APPLIED,
        user_id=user.user_id,
        plan=updated.plan if updated else plan,
        subscription_status=updated.subscription_status if updated else status,
    )
