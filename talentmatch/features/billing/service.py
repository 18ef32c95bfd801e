"""
Billing service orchestrator.

Coordinates:
- Customer management (stripe_customer_id on the user)
- Checkout and portal sessions
- Webhook processing into entitlement changes

All Stripe-specific code is in stripe_provider.py.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from talentmatch.core.config import Settings, settings
from talentmatch.core.errors import BillingDisabledError, NotFoundError, ValidationError
from talentmatch.core.metrics import billing_webhooks_total
from talentmatch.features.billing.provider import BillingProvider, BillingProviderError
from talentmatch.features.billing.stripe_provider import StripeProvider
from talentmatch.features.entitlements.service import apply_entitlement_change
from talentmatch.features.plans.catalog import FREE, PLAN_CATALOG, price_for_plan
from talentmatch.features.storage.base import Stores
from talentmatch.features.usage.locks import UserLockRegistry
from talentmatch.models.entitlement import EntitlementChangeStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: Optional[str]
    event_type: Optional[str]
    status: str

    def to_response(self) -> dict:
        return {"received": True, "status": self.status}


def billing_enabled(settings_obj: Optional[Settings] = None) -> bool:
    """Check if billing is enabled (Stripe configured)."""
    cfg = settings_obj or settings
    return bool(cfg.STRIPE_SECRET_KEY)


def get_provider(settings_obj: Optional[Settings] = None) -> Optional[BillingProvider]:
    """Get billing provider if billing is enabled."""
    cfg = settings_obj or settings
    if not billing_enabled(cfg):
        return None
    try:
        return StripeProvider(settings_obj=cfg)
    except BillingProviderError as e:
        logger.warning(f"[billing] provider unavailable: {e}")
        return None


def _require_provider(provider: Optional[BillingProvider]) -> BillingProvider:
    if provider is None:
        raise BillingDisabledError("Payment processing not yet configured. Please contact support.")
    return provider


def ensure_customer_for_user(user_id: int, *, stores: Stores, provider: Optional[BillingProvider]) -> str:
    """Return the user's Stripe customer id, creating and storing it on first use."""
    provider = _require_provider(provider)
    user = stores.users.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.stripe_customer_id:
        return user.stripe_customer_id

    customer_id = provider.ensure_customer(user.user_id, user.email, user.full_name)
    stores.users.update_user(user.user_id, stripe_customer_id=customer_id)
    logger.info("[billing] customer created", extra={"user_id": user.user_id})
    return customer_id


def start_checkout(
    user_id: int,
    plan: str,
    *,
    stores: Stores,
    provider: Optional[BillingProvider],
    settings_obj: Optional[Settings] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> str:
    """
    Start a subscription checkout for a paid plan.

    Raises:
        BillingDisabledError: Stripe not configured
        ValidationError: plan unknown, free, or without a configured price
    """
    cfg = settings_obj or settings
    provider = _require_provider(provider)

    plan_id = (plan or "").strip().lower()
    if plan_id not in PLAN_CATALOG or plan_id == FREE:
        raise ValidationError(f"Cannot purchase plan: {plan}")
    price_id = price_for_plan(plan_id, cfg)
    if not price_id:
        raise ValidationError(f"No Stripe price configured for plan: {plan_id}")

    customer_id = ensure_customer_for_user(user_id, stores=stores, provider=provider)
    base = cfg.BASE_URL.rstrip("/")
    return provider.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        success_url=success_url or f"{base}/dashboard?checkout=success",
        cancel_url=cancel_url or f"{base}/settings?checkout=cancelled",
        metadata={"userId": str(user_id), "plan": plan_id},
    )


def start_portal(
    user_id: int,
    *,
    stores: Stores,
    provider: Optional[BillingProvider],
    settings_obj: Optional[Settings] = None,
    return_url: Optional[str] = None,
) -> str:
    cfg = settings_obj or settings
    provider = _require_provider(provider)
    user = stores.users.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.stripe_customer_id:
        raise NotFoundError("No billing account for this user")
    return provider.create_portal_session(
        customer_id=user.stripe_customer_id,
        return_url=return_url or f"{cfg.BASE_URL.rstrip('/')}/settings",
    )


def process_webhook_event(
    headers: Dict[str, str],
    body: bytes,
    *,
    stores: Stores,
    locks: UserLockRegistry,
    provider: Optional[BillingProvider],
) -> WebhookOutcome:
    """
    Process a billing webhook (idempotent).

    1. Verify signature and normalize
    2. Skip event ids already processed
    3. Apply the entitlement change
    4. Mark processed (or record the error and re-raise)

    Raises:
        BillingDisabledError: Stripe not configured
        BillingWebhookError: If signature invalid or payload unparsable
    """
    provider = _require_provider(provider)
    change = provider.parse_webhook(headers, body)
    if change is None:
        billing_webhooks_total.inc({"status": "ignored"})
        return WebhookOutcome(event_id=None, event_type=None, status="ignored")

    if change.event_id:
        payload_hash = hashlib.sha256(body).hexdigest()
        first_delivery = stores.billing_events.record_event(
            change.event_id, change.event_type or "unknown", payload_hash
        )
        if not first_delivery and stores.billing_events.is_processed(change.event_id):
            logger.info("[billing] duplicate webhook", extra={"event_id": change.event_id})
            billing_webhooks_total.inc({"status": "duplicate"})
            return WebhookOutcome(event_id=change.event_id, event_type=change.event_type, status="duplicate")

    try:
        result = apply_entitlement_change(change, stores=stores, locks=locks)
    except Exception as e:
        if change.event_id:
            stores.billing_events.mark_processed(change.event_id, error=str(e))
        billing_webhooks_total.inc({"status": "failed"})
        raise

    if result.status == EntitlementChangeStatus.UNRESOLVED and change.event_id:
        # Acknowledged so Stripe stops retrying; kept unprocessed for inspection
        stores.billing_events.mark_processed(change.event_id, error="unresolved subject")

    billing_webhooks_total.inc({"status": result.status.value})
    return WebhookOutcome(event_id=change.event_id, event_type=change.event_type, status=result.status.value)
