"""Test doubles shared by the test suite."""
import threading
from typing import List, Optional

from talentmatch.core.config import Settings
from talentmatch.features.scoring.engine import ScoringEngineError
from talentmatch.models.analysis import DraftResult, ScoreResult


TEST_JWT_SECRET = "test-secret-not-for-production"


class FakeScoringEngine:
    """
    Deterministic scoring engine.

    `fail` makes assess raise; `gate` (a threading.Event) blocks assess until
    set, so tests can hold a request in flight.
    """

    def __init__(self, overall: int = 80, fail: bool = False):
        self.overall = overall
        self.fail = fail
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()
        self.calls: List[str] = []

    def assess(self, resume_text: str, job_description: str) -> ScoreResult:
        self.calls.append("assess")
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise ScoringEngineError("engine down")
        return ScoreResult(
            matching_skills=["python", "sql"],
            missing_skills=["kubernetes"],
            technical_score=self.overall,
            experience_score=self.overall,
            domain_score=self.overall,
            overall_score=self.overall,
        )

    def draft(self, candidate_name, job_title, company_name, matching_skills, tone, overall_score) -> DraftResult:
        self.calls.append("draft")
        return DraftResult(
            message=f"Hi {candidate_name}, {job_title} at {company_name} fits your {', '.join(matching_skills)}.",
            improvement_suggestions=["Ship a side project"],
        )


def build_test_settings(**overrides) -> Settings:
    values = {
        "ENV": "test",
        "DATABASE_URL": None,
        "TEST_DATABASE_URL": None,
        "JWT_SECRET": TEST_JWT_SECRET,
        "GROQ_API_KEY": None,
        "STRIPE_SECRET_KEY": None,
        "STRIPE_WEBHOOK_SECRET": None,
        "STRIPE_STARTER_PRICE_ID": "price_starter",
        "STRIPE_PRO_PRICE_ID": "price_pro",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)
