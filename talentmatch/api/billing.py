"""
Billing API routes.

Minimal surface:
- POST /api/billing/checkout: Create checkout session
- POST /api/billing/portal: Create portal session
- POST /api/billing/webhook: Handle Stripe webhooks
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from talentmatch.core.auth import RequestContext, get_request_context
from talentmatch.core.errors import AppError
from talentmatch.core.services import AppServices, get_services
from talentmatch.features.billing.provider import BillingProviderError, BillingWebhookError
from talentmatch.features.billing.service import process_webhook_event, start_checkout, start_portal


logger = logging.getLogger("talentmatch")

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutRequest(BaseModel):
    """Request to create checkout session."""
    plan: str
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class PortalRequest(BaseModel):
    return_url: Optional[str] = None


class SessionResponse(BaseModel):
    url: str


def _provider_error(e: BillingProviderError, request_id: Optional[str]) -> AppError:
    logger.error("[billing] provider error", extra={"error": str(e), "request_id": request_id})
    return AppError("Payment provider error. Please try again.", code="billing_provider_error", status_code=502, request_id=request_id)


@router.post("/checkout", response_model=SessionResponse)
def create_checkout(
    body: CheckoutRequest,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    """
    Errors:
        503: Billing disabled (STRIPE_SECRET_KEY not set)
        400: Unknown plan or no price configured
        502: Stripe API error
    """
    try:
        url = start_checkout(
            ctx.user_id,
            body.plan,
            stores=services.stores,
            provider=services.billing,
            settings_obj=services.settings,
            success_url=body.success_url,
            cancel_url=body.cancel_url,
        )
    except BillingProviderError as e:
        raise _provider_error(e, ctx.request_id)
    return SessionResponse(url=url)


@router.post("/portal", response_model=SessionResponse)
def create_portal(
    body: PortalRequest,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    try:
        url = start_portal(
            ctx.user_id,
            stores=services.stores,
            provider=services.billing,
            settings_obj=services.settings,
            return_url=body.return_url,
        )
    except BillingProviderError as e:
        raise _provider_error(e, ctx.request_id)
    return SessionResponse(url=url)


@router.post("/webhook")
async def stripe_webhook(request: Request, services: AppServices = Depends(get_services)):
    """
    Stripe webhook receiver (no auth; signature verified instead).

    Unresolvable subjects are acknowledged with 200 so Stripe stops retrying.
    """
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    try:
        outcome = await run_in_threadpool(
            process_webhook_event,
            headers,
            body,
            stores=services.stores,
            locks=services.locks,
            provider=services.billing,
        )
    except BillingWebhookError as e:
        logger.warning("[billing] webhook rejected", extra={"error": str(e)})
        raise AppError(str(e), code="invalid_webhook", status_code=400)
    return outcome.to_response()
