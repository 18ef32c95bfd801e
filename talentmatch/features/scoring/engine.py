"""
talentmatch/features/scoring/engine.py

Scoring engine adapters.

Handles:
- Groq chat completions for skill assessment and outreach drafting
- Strict parsing of the model's JSON into ScoreResult / DraftResult
- Optional neutral fallback when the model is unavailable
"""

import json
import logging
import re
from typing import List, Optional, Protocol

import groq
from pydantic import ValidationError as PydanticValidationError

from talentmatch.core.config import Settings, settings
from talentmatch.features.scoring.prompts import (
    ASSESS_PROMPT,
    DRAFT_PROMPT,
    FALLBACK_MESSAGE,
    FALLBACK_SUGGESTIONS,
    SYSTEM_PROMPT,
    TONE_HINTS,
)
from talentmatch.models.analysis import DraftResult, ScoreResult


logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ScoringEngineError(Exception):
    """The engine failed, timed out or returned something unusable."""


class ScoringEngine(Protocol):
    def assess(self, resume_text: str, job_description: str) -> ScoreResult: ...

    def draft(
        self,
        candidate_name: str,
        job_title: str,
        company_name: str,
        matching_skills: List[str],
        tone: str,
        overall_score: int,
    ) -> DraftResult: ...


def parse_json_payload(content: Optional[str]) -> dict:
    if not content or not content.strip():
        raise ScoringEngineError("Empty response from scoring engine")
    text = _FENCE_RE.sub("", content.strip()).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScoringEngineError(f"Scoring engine returned invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ScoringEngineError("Scoring engine returned a non-object payload")
    return payload


class GroqScoringEngine:
    def __init__(self, api_key: Optional[str], model: str, timeout: float = 30.0, client=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings_obj: Optional[Settings] = None) -> "GroqScoringEngine":
        cfg = settings_obj or settings
        return cls(
            api_key=cfg.GROQ_API_KEY,
            model=cfg.SCORING_MODEL,
            timeout=cfg.SCORING_TIMEOUT_SECONDS,
        )

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise ScoringEngineError("GROQ_API_KEY is not configured")
            self._client = groq.Groq(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _complete(self, prompt: str, temperature: float) -> dict:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                model=self.model,
                temperature=temperature,
                max_tokens=1024,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            logger.error("[scoring] groq request failed", extra={"model": self.model, "error": str(exc)})
            raise ScoringEngineError(f"Scoring engine request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise ScoringEngineError("Scoring engine returned no choices") from exc
        return parse_json_payload(content)

    def assess(self, resume_text: str, job_description: str) -> ScoreResult:
        payload = self._complete(
            ASSESS_PROMPT.format(resume_text=resume_text, job_description=job_description),
            temperature=0.3,
        )
        try:
            return ScoreResult.model_validate(payload)
        except PydanticValidationError as exc:
            raise ScoringEngineError(f"Malformed assessment: {exc.error_count()} invalid field(s)") from exc

    def draft(
        self,
        candidate_name: str,
        job_title: str,
        company_name: str,
        matching_skills: List[str],
        tone: str,
        overall_score: int,
    ) -> DraftResult:
        tone_text = f"{tone} ({TONE_HINTS[tone]})" if tone in TONE_HINTS else tone
        payload = self._complete(
            DRAFT_PROMPT.format(
                candidate_name=candidate_name,
                job_title=job_title,
                company_name=company_name,
                matching_skills=", ".join(matching_skills) or "n/a",
                tone=tone_text,
                match_score=overall_score,
            ),
            temperature=0.7,
        )
        try:
            return DraftResult.model_validate(payload)
        except PydanticValidationError as exc:
            raise ScoringEngineError(f"Malformed draft: {exc.error_count()} invalid field(s)") from exc


def neutral_assessment() -> ScoreResult:
    return ScoreResult(
        matching_skills=[],
        missing_skills=[],
        technical_score=50,
        experience_score=50,
        domain_score=50,
        overall_score=50,
    )


def template_draft(candidate_name: str, job_title: str, company_name: str, matching_skills: List[str]) -> DraftResult:
    return DraftResult(
        message=FALLBACK_MESSAGE.format(
            candidate_name=candidate_name or "[Candidate Name]",
            skills=", ".join(matching_skills),
            job_title=job_title,
            company_name=company_name,
        ),
        improvement_suggestions=list(FALLBACK_SUGGESTIONS),
    )


class FallbackScoringEngine:
    """Wraps an engine and substitutes neutral output when it fails."""

    def __init__(self, inner: ScoringEngine):
        self.inner = inner

    def assess(self, resume_text: str, job_description: str) -> ScoreResult:
        try:
            return self.inner.assess(resume_text, job_description)
        except ScoringEngineError as exc:
            logger.warning("[scoring] assess fallback", extra={"error": str(exc)})
            return neutral_assessment()

    def draft(
        self,
        candidate_name: str,
        job_title: str,
        company_name: str,
        matching_skills: List[str],
        tone: str,
        overall_score: int,
    ) -> DraftResult:
        try:
            return self.inner.draft(candidate_name, job_title, company_name, matching_skills, tone, overall_score)
        except ScoringEngineError as exc:
            logger.warning("[scoring] draft fallback", extra={"error": str(exc)})
            return template_draft(candidate_name, job_title, company_name, matching_skills)


def build_scoring_engine(settings_obj: Optional[Settings] = None) -> ScoringEngine:
    cfg = settings_obj or settings
    engine: ScoringEngine = GroqScoringEngine.from_settings(cfg)
    if cfg.SCORING_FALLBACK_ENABLED:
        engine = FallbackScoringEngine(engine)
    return engine
