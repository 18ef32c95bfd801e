"""
Usage reconciliation.

Compares each user's ledger count with the analyses actually stored in the
current window. Over-counts are lowered to the record count when `fix` is
set; under-counts (a record persisted without its ledger commit) are only
reported.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from talentmatch.features.storage.base import Stores
from talentmatch.features.usage.ledger import is_new_window
from talentmatch.features.usage.locks import UserLockRegistry


logger = logging.getLogger(__name__)


def reconcile_usage(
    stores: Stores,
    *,
    now: Optional[datetime] = None,
    fix: bool = False,
    limit: int = 100,
    locks: Optional[UserLockRegistry] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    locks = locks or UserLockRegistry()
    issues: List[Dict[str, Any]] = []
    corrections = 0

    for user in stores.users.list_users():
        if is_new_window(user.usage_reset_date, now):
            # Next admission resets the count anyway
            continue

        with locks.hold(user.user_id):
            current = stores.users.get_user(user.user_id)
            if current is None or is_new_window(current.usage_reset_date, now):
                continue
            window_start = current.usage_reset_date.replace(hour=0, minute=0, second=0, microsecond=0)
            recorded = len(stores.analyses.list_analyses_since(current.user_id, window_start))
            if recorded == current.usage_count:
                continue

            kind = "over_count" if current.usage_count > recorded else "under_count"
            issues.append({
                "type": kind,
                "user_id": current.user_id,
                "usage_count": current.usage_count,
                "recorded": recorded,
            })
            if kind == "over_count" and fix and corrections < limit:
                # Locks here are local to this process; a server commit can still land in between
                if stores.users.compare_and_set_usage(
                    current.user_id,
                    seen_count=current.usage_count,
                    seen_reset_date=current.usage_reset_date,
                    usage_count=recorded,
                    usage_reset_date=current.usage_reset_date,
                ):
                    corrections += 1
                else:
                    logger.info("[reconcile] ledger moved, correction skipped", extra={"user_id": current.user_id})

    logger.info(
        "[reconcile] usage ledger",
        extra={"issues_found": len(issues), "corrections_applied": corrections, "fix": fix},
    )
    return {
        "issues_found": len(issues),
        "corrections_applied": corrections,
        "timestamp": now.isoformat(),
        "issues": issues,
    }
