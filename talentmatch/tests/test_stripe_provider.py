"""
Stripe provider: webhook verification and normalization into
EntitlementChangeEvents (no real API calls).
"""
import json
from unittest.mock import patch

import pytest
import stripe

from talentmatch.features.billing.provider import BillingProviderError, BillingWebhookError
from talentmatch.features.billing.stripe_provider import StripeProvider
from talentmatch.tests.mocks import build_test_settings


SUBSCRIPTION_PRO = {
    "id": "sub_1",
    "customer": "cus_1",
    "status": "active",
    "items": {"data": [{"price": {"id": "price_pro"}}]},
}


@pytest.fixture
def provider():
    cfg = build_test_settings(STRIPE_SECRET_KEY="sk_test_123", STRIPE_WEBHOOK_SECRET="whsec_123")
    return StripeProvider(settings_obj=cfg)


def event_body(event_type, obj, event_id="evt_1"):
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode()


def test_requires_secret_key():
    with pytest.raises(BillingProviderError):
        StripeProvider(settings_obj=build_test_settings())


def test_missing_signature_header_is_rejected(provider):
    with pytest.raises(BillingWebhookError):
        provider.parse_webhook({}, b"{}")


def test_bad_signature_is_rejected(provider):
    error = stripe.SignatureVerificationError("bad sig", "t=1,v1=bad")
    with patch.object(stripe.Webhook, "construct_event", side_effect=error):
        with pytest.raises(BillingWebhookError):
            provider.parse_webhook({"stripe-signature": "t=1,v1=bad"}, b"{}")


def test_checkout_completed_uses_metadata_user_and_subscription_price(provider):
    body = event_body(
        "checkout.session.completed",
        {"customer": "cus_1", "subscription": "sub_1", "metadata": {"userId": "42"}},
    )
    with patch.object(stripe.Webhook, "construct_event", return_value={}), \
            patch.object(stripe.Subscription, "retrieve", return_value=SUBSCRIPTION_PRO) as retrieve:
        event = provider.parse_webhook({"stripe-signature": "sig"}, body)

    retrieve.assert_called_once_with("sub_1")
    assert event.event_id == "evt_1"
    assert event.user_id == 42
    assert event.stripe_customer_id == "cus_1"
    assert event.plan == "pro"
    assert event.status == "active"
    assert event.cancellation is False


def test_subscription_updated_carries_customer_email_and_status(provider):
    subscription = dict(SUBSCRIPTION_PRO, status="past_due", items={"data": [{"price": {"id": "price_starter"}}]})
    body = event_body("customer.subscription.updated", subscription)
    with patch.object(stripe.Webhook, "construct_event", return_value={}), \
            patch.object(stripe.Customer, "retrieve", return_value={"id": "cus_1", "email": "pay@example.com"}):
        event = provider.parse_webhook({"stripe-signature": "sig"}, body)

    assert event.stripe_customer_id == "cus_1"
    assert event.email == "pay@example.com"
    assert event.plan == "starter"
    assert event.status == "past_due"


def test_unknown_price_maps_to_free(provider):
    subscription = dict(SUBSCRIPTION_PRO, items={"data": [{"price": {"id": "price_legacy"}}]})
    with patch.object(stripe.Customer, "retrieve", return_value={"deleted": True}):
        event = provider.normalize_event(
            {"id": "evt_2", "type": "customer.subscription.updated", "data": {"object": subscription}}
        )
    assert event.plan == "free"
    assert event.email is None


def test_subscription_deleted_is_a_cancellation(provider):
    with patch.object(stripe.Customer, "retrieve", return_value={"email": "pay@example.com"}):
        event = provider.normalize_event(
            {"id": "evt_3", "type": "customer.subscription.deleted", "data": {"object": SUBSCRIPTION_PRO}}
        )
    assert event.cancellation is True
    assert event.stripe_customer_id == "cus_1"


def test_other_event_types_are_ignored(provider):
    assert provider.normalize_event({"id": "evt_4", "type": "invoice.paid", "data": {"object": {}}}) is None


def test_checkout_session_create_passes_subscription_mode(provider):
    with patch.object(stripe.checkout.Session, "create", return_value={"url": "https://checkout.test/s"}) as create:
        url = provider.create_checkout_session("cus_1", "price_pro", "https://ok", "https://cancel", {"userId": "1"})
    assert url == "https://checkout.test/s"
    kwargs = create.call_args.kwargs
    assert kwargs["mode"] == "subscription"
    assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
