"""
Analysis API routes.

Handlers are plain `def` so FastAPI runs them in its threadpool; the
admission gate blocks on per-user locks and on the scoring engine.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from talentmatch.core.auth import RequestContext, get_request_context
from talentmatch.core.errors import (
    NotFoundError,
    NotImplementedFeatureError,
    QuotaExceededError,
    ScoringUnavailableError,
)
from talentmatch.core.services import AppServices, get_services
from talentmatch.features.admission.gate import ScoringFailure
from talentmatch.features.plans.catalog import format_quota, is_unlimited
from talentmatch.features.stats.service import get_stats
from talentmatch.features.usage.ledger import QuotaRejection, check_and_window
from talentmatch.models.analysis import AnalysisRequest


logger = logging.getLogger("talentmatch")

router = APIRouter(prefix="/api", tags=["analyses"])


@router.post("/analyze")
def analyze(
    body: AnalysisRequest,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    """
    Score a resume against a job description and draft outreach.

    Errors:
        429: daily quota for the user's plan is used up
        503: scoring engine failed; nothing was recorded or counted
    """
    result = services.gate.admit_and_run(ctx.user_id, body)

    if isinstance(result, QuotaRejection):
        raise QuotaExceededError(
            result.message,
            plan=result.plan,
            quota=result.quota_label,
            request_id=ctx.request_id,
        )
    if isinstance(result, ScoringFailure):
        raise ScoringUnavailableError("Analysis failed. Please try again.", request_id=ctx.request_id)

    return {"success": True, "analysis": result.to_response()}


@router.get("/analyses")
def list_analyses(
    limit: int = Query(10, ge=1, le=100),
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    records = services.stores.analyses.list_analyses(ctx.user_id, limit=limit)
    return {"analyses": [r.to_response() for r in records]}


@router.get("/analyses/{analysis_id}")
def get_analysis(
    analysis_id: int,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    record = services.stores.analyses.get_analysis(analysis_id)
    # Other users' analyses are indistinguishable from missing ones
    if record is None or record.user_id != ctx.user_id:
        raise NotFoundError("Analysis not found")
    return {"analysis": record.to_response()}


@router.get("/stats")
def stats(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return {"stats": get_stats(ctx.user_id, stores=services.stores).to_response()}


@router.get("/usage")
def usage(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    user = services.stores.users.get_user(ctx.user_id)
    if user is None:
        raise NotFoundError("User not found")
    now = datetime.now(timezone.utc)
    decision = check_and_window(user, now)
    remaining = None if is_unlimited(decision.quota) else max(decision.quota - decision.effective_count, 0)
    return {
        "plan": decision.plan,
        "quota": format_quota(decision.quota),
        "usageCount": decision.effective_count,
        "remaining": "unlimited" if remaining is None else remaining,
        "resetDate": now.isoformat() if decision.new_window else user.usage_reset_date.isoformat(),
        "subscriptionStatus": user.subscription_status,
    }


@router.post("/upload-pdf")
def upload_pdf(ctx: RequestContext = Depends(get_request_context)):
    raise NotImplementedFeatureError(
        "PDF upload not implemented yet. Please paste the resume text manually in the form.",
        request_id=ctx.request_id,
    )
