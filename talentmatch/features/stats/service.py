"""Per-user monthly statistics over stored analyses."""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from talentmatch.features.storage.base import Stores
from talentmatch.models.analysis import AnalysisRecord
from talentmatch.models.stats import UserStats


def month_start(now: datetime) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize(records: Iterable[AnalysisRecord], now: datetime) -> UserStats:
    start = month_start(now)
    monthly = [
        r for r in records
        if (r.created_at.astimezone(timezone.utc).year, r.created_at.astimezone(timezone.utc).month)
        == (start.year, start.month)
    ]
    count = len(monthly)
    avg = _round_half_up(sum(r.match_score for r in monthly) / count) if count else 0
    emails = {r.candidate_email.strip().lower() for r in monthly if r.candidate_email and r.candidate_email.strip()}
    return UserStats(
        monthly_analyses=count,
        avg_match_score=avg,
        messages_generated=count,
        active_candidates=len(emails),
    )


def get_stats(user_id: int, *, stores: Stores, now: Optional[datetime] = None) -> UserStats:
    now = now or datetime.now(timezone.utc)
    records = stores.analyses.list_analyses_since(user_id, month_start(now))
    return summarize(records, now)
