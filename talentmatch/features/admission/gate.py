"""
talentmatch/features/admission/gate.py

Request admission gate for analyses.

Flow per request:
1. Under the user's lock: check quota (counting in-flight requests), reserve a slot.
2. Without the lock: call the scoring engine (assess, then draft).
3. Under the lock again: re-check against the current plan, persist the
   record, then commit the usage ledger as a compare-and-set increment.

The user lock and reservations are per process. Across several workers
the ledger never loses an increment, but two workers admitting the last
slot at the same moment can each commit, leaving the user one over quota.

A request that fails scoring leaves no record and no ledger change. A
request invalidated by a downgrade while it was scoring is rejected and
its scored work is discarded.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from talentmatch.core.database import as_utc
from talentmatch.core.errors import NotFoundError
from talentmatch.core.logging import log_event
from talentmatch.core.metrics import admissions_total, scoring_duration_seconds
from talentmatch.features.scoring.engine import ScoringEngine
from talentmatch.features.storage.base import Stores
from talentmatch.features.usage import ledger
from talentmatch.features.usage.ledger import QuotaRejection
from talentmatch.features.usage.locks import UserLockRegistry
from talentmatch.models.analysis import AnalysisOutcome, AnalysisRequest


logger = logging.getLogger(__name__)

COMMIT_ATTEMPTS = 3


class LedgerConflictError(RuntimeError):
    """The ledger kept changing underneath a commit."""


@dataclass(frozen=True)
class ScoringFailure:
    reason: str
    retryable: bool = True


AdmissionResult = Union[AnalysisOutcome, QuotaRejection, ScoringFailure]


class AdmissionGate:
    def __init__(self, stores: Stores, locks: UserLockRegistry, engine: ScoringEngine, clock=None):
        self.stores = stores
        self.locks = locks
        self.engine = engine
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _load_user(self, user_id: int):
        user = self.stores.users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _reject(self, user_id: int, decision: ledger.UsageDecision, stage: str) -> QuotaRejection:
        rejection = ledger.build_rejection(decision)
        logger.info(
            "[admission] QUOTA_EXCEEDED",
            extra={
                "user_id": user_id,
                "plan": rejection.plan,
                "quota": rejection.quota_label,
                "usage_count": rejection.usage_count,
                "stage": stage,
            },
        )
        admissions_total.inc({"outcome": "quota_exceeded"})
        return rejection

    def admit_and_run(self, user_id: int, request: AnalysisRequest, *, now: Optional[datetime] = None) -> AdmissionResult:
        with self.locks.hold(user_id):
            user = self._load_user(user_id)
            decision = ledger.check_and_window(user, now or self.clock(), pending=self.locks.pending(user_id))
            if not decision.admitted:
                return self._reject(user_id, decision, "check")
            self.locks.reserve(user_id)

        try:
            return self._run_reserved(user_id, request, now)
        finally:
            self.locks.release(user_id)

    def _run_reserved(self, user_id: int, request: AnalysisRequest, now: Optional[datetime]) -> AdmissionResult:
        candidate_name = request.candidate_name or "Candidate"
        started = time.perf_counter()
        try:
            score = self.engine.assess(request.resume_text, request.job_description)
            draft = self.engine.draft(
                candidate_name,
                request.job_title,
                request.company_name,
                list(score.matching_skills),
                request.outreach_tone,
                score.overall_score,
            )
        except Exception as exc:
            scoring_duration_seconds.observe(time.perf_counter() - started, {"result": "failed"})
            logger.warning(
                "[admission] SCORING_FAILED",
                extra={"user_id": user_id, "error": str(exc), "error_type": type(exc).__name__},
            )
            admissions_total.inc({"outcome": "scoring_failed"})
            return ScoringFailure(reason=str(exc) or type(exc).__name__)
        scoring_duration_seconds.observe(time.perf_counter() - started, {"result": "ok"})

        with self.locks.hold(user_id):
            commit_time = as_utc(now or self.clock())
            user = self._load_user(user_id)
            # Other in-flight requests still count; this one's own reservation does not
            others = max(self.locks.pending(user_id) - 1, 0)
            decision = ledger.check_and_window(user, commit_time, pending=others)
            if not decision.admitted:
                return self._reject(user_id, decision, "commit")

            record = self.stores.analyses.create_analysis(
                user_id,
                {
                    "candidate_name": request.candidate_name,
                    "candidate_email": request.candidate_email,
                    "job_title": request.job_title,
                    "company_name": request.company_name,
                    "job_description": request.job_description,
                    "resume_text": request.resume_text,
                    "outreach_tone": request.outreach_tone,
                    "match_score": score.overall_score,
                    "technical_score": score.technical_score,
                    "experience_score": score.experience_score,
                    "domain_score": score.domain_score,
                    "matching_skills": list(score.matching_skills),
                    "missing_skills": list(score.missing_skills),
                    "outreach_message": draft.message,
                    "improvement_suggestions": list(draft.improvement_suggestions),
                    "created_at": commit_time,
                },
            )

            try:
                update = self._commit_usage(user, commit_time)
            except Exception as exc:
                log_event(
                    "error",
                    "[admission] inconsistent_commit",
                    user_id=user_id,
                    error_code="inconsistent_commit",
                    extra={"analysis_id": record.id, "error": str(exc)},
                )
                admissions_total.inc({"outcome": "inconsistent_commit"})
                return AnalysisOutcome(record=record, usage_count=decision.effective_count, ledger_committed=False)

        logger.info(
            "[admission] ADMITTED",
            extra={
                "user_id": user_id,
                "analysis_id": record.id,
                "plan": decision.plan,
                "usage_count": update.usage_count,
            },
        )
        admissions_total.inc({"outcome": "admitted"})
        return AnalysisOutcome(record=record, usage_count=update.usage_count)

    def _commit_usage(self, user, commit_time: datetime) -> ledger.UsageUpdate:
        """
        Increment the ledger with a compare-and-set against the row last read.

        Another process (a second worker, the reconcile job) may have moved
        the count since; the row is reloaded and the increment recomputed.
        """
        for _ in range(COMMIT_ATTEMPTS):
            update = ledger.commit(user, commit_time)
            if self.stores.users.compare_and_set_usage(
                user.user_id,
                seen_count=user.usage_count,
                seen_reset_date=user.usage_reset_date,
                usage_count=update.usage_count,
                usage_reset_date=update.usage_reset_date,
            ):
                return update
            user = self._load_user(user.user_id)
        raise LedgerConflictError(f"usage ledger for user {user.user_id} changed {COMMIT_ATTEMPTS} times during commit")
