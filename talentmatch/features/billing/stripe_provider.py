"""
Stripe billing provider.

Implements BillingProvider using the Stripe API and turns the three
subscription lifecycle events into EntitlementChangeEvents.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from talentmatch.core.config import Settings, settings
from talentmatch.features.billing.provider import BillingProviderError, BillingWebhookError
from talentmatch.features.plans.catalog import plan_for_price
from talentmatch.models.entitlement import EntitlementChangeEvent


logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _get(obj: Any, key: str) -> Any:
    """Index a dict or StripeObject without tripping over missing keys."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError):
        return None


def _first_price_id(subscription: Any) -> Optional[str]:
    items = _get(_get(subscription, "items"), "data") or []
    if not items:
        return None
    return _get(_get(items[0], "price"), "id")


def _parse_user_id(value: Any) -> Optional[int]:
    try:
        user_id = int(value)
    except (TypeError, ValueError):
        return None
    return user_id if user_id > 0 else None


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None, settings_obj: Optional[Settings] = None):
        self.settings = settings_obj or settings
        self.secret_key = secret_key or self.settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or self.settings.STRIPE_WEBHOOK_SECRET

        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key

    def ensure_customer(self, user_id: int, email: Optional[str] = None, name: Optional[str] = None) -> str:
        customer_data: Dict[str, Any] = {"metadata": {"userId": str(user_id)}}
        if email:
            customer_data["email"] = email
        if name:
            customer_data["name"] = name
        try:
            customer = stripe.Customer.create(**customer_data)
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe customer creation failed: {e}")
        return customer["id"]

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe checkout session creation failed: {e}")
        return session["url"]

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe portal session creation failed: {e}")
        return session["url"]

    def parse_webhook(self, headers: Dict[str, str], body: bytes) -> Optional[EntitlementChangeEvent]:
        if not self.webhook_secret:
            raise BillingWebhookError("STRIPE_WEBHOOK_SECRET not configured")

        sig_header = headers.get("stripe-signature") or headers.get("Stripe-Signature")
        if not sig_header:
            raise BillingWebhookError("Missing stripe-signature header")

        try:
            stripe.Webhook.construct_event(body, sig_header, self.webhook_secret)
            event = json.loads(body)
        except ValueError as e:
            raise BillingWebhookError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise BillingWebhookError(f"Invalid signature: {e}")

        return self.normalize_event(event)

    def normalize_event(self, event: Dict[str, Any]) -> Optional[EntitlementChangeEvent]:
        """Map a verified Stripe event to an entitlement change; None when irrelevant."""
        event_type = _get(event, "type")
        event_id = _get(event, "id")
        data = _get(_get(event, "data"), "object") or {}

        if event_type == CHECKOUT_COMPLETED:
            return self._from_checkout(event_id, data)
        if event_type == SUBSCRIPTION_UPDATED:
            return self._from_subscription(event_id, event_type, data, cancellation=False)
        if event_type == SUBSCRIPTION_DELETED:
            return self._from_subscription(event_id, event_type, data, cancellation=True)

        logger.info("[billing] unhandled event type", extra={"event_type": event_type, "event_id": event_id})
        return None

    def _plan_for_subscription(self, subscription: Any) -> str:
        return plan_for_price(_first_price_id(subscription), self.settings)

    def _from_checkout(self, event_id: Optional[str], session: Dict[str, Any]) -> EntitlementChangeEvent:
        metadata = _get(session, "metadata") or {}
        user_id = _parse_user_id(_get(metadata, "userId") or _get(metadata, "user_id"))

        subscription = _get(session, "subscription")
        if isinstance(subscription, str):
            try:
                subscription = stripe.Subscription.retrieve(subscription)
            except stripe.StripeError as e:
                raise BillingProviderError(f"Stripe subscription lookup failed: {e}")

        return EntitlementChangeEvent(
            event_id=event_id,
            event_type=CHECKOUT_COMPLETED,
            user_id=user_id,
            stripe_customer_id=_get(session, "customer"),
            email=_get(_get(session, "customer_details"), "email"),
            plan=self._plan_for_subscription(subscription),
            status="active",
        )

    def _customer_email(self, customer_id: Optional[str]) -> Optional[str]:
        if not customer_id:
            return None
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except stripe.StripeError as e:
            logger.warning("[billing] customer lookup failed", extra={"stripe_customer_id": customer_id, "error": str(e)})
            return None
        if _get(customer, "deleted"):
            return None
        return _get(customer, "email")

    def _from_subscription(self, event_id: Optional[str], event_type: str, subscription: Dict[str, Any], *, cancellation: bool) -> EntitlementChangeEvent:
        customer_id = _get(subscription, "customer")
        return EntitlementChangeEvent(
            event_id=event_id,
            event_type=event_type,
            stripe_customer_id=customer_id,
            email=self._customer_email(customer_id),
            plan=self._plan_for_subscription(subscription),
            status=_get(subscription, "status") or "active",
            cancellation=cancellation,
        )
