"""
talentmatch/models/analysis.py

Analysis input, scoring engine payloads and the persisted AnalysisRecord.
"""

import math
import re
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


OutreachTone = Literal["professional", "casual", "enthusiastic", "direct"]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def looks_like_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


class AnalysisRequest(BaseModel):
    """Validated body of POST /api/analyze."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    company_name: str = Field(min_length=1, alias="companyName")
    job_title: str = Field(min_length=1, alias="jobTitle")
    job_description: str = Field(min_length=10, alias="jobDescription")
    resume_text: str = Field(min_length=10, alias="resumeText")
    outreach_tone: OutreachTone = Field(alias="outreachTone")
    candidate_name: Optional[str] = Field(default=None, alias="candidateName")
    candidate_email: Optional[str] = Field(default=None, alias="candidateEmail")

    @field_validator("candidate_email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        value = value.strip()
        if not looks_like_email(value):
            raise ValueError("must be a valid email address")
        return value


class ScoreResult(BaseModel):
    """Structured output of the scoring engine's assess call."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    matching_skills: List[str] = Field(default_factory=list, alias="matchingSkills")
    missing_skills: List[str] = Field(default_factory=list, alias="missingSkills")
    technical_score: int = Field(ge=0, le=100, alias="technicalScore")
    experience_score: int = Field(ge=0, le=100, alias="experienceScore")
    domain_score: int = Field(ge=0, le=100, alias="domainScore")
    overall_score: int = Field(ge=0, le=100, alias="overallScore")

    @field_validator("technical_score", "experience_score", "domain_score", "overall_score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        # Models sometimes answer 72.5 or 105; anything non-numeric still fails validation
        if isinstance(value, bool):
            return value
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("score must be a finite number")
        if isinstance(value, (int, float)):
            return max(0, min(100, int(round(value))))
        return value


class DraftResult(BaseModel):
    """Structured output of the scoring engine's draft call."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str = Field(min_length=1)
    improvement_suggestions: List[str] = Field(default_factory=list, alias="improvementSuggestions")


class AnalysisRecord(BaseModel):
    """Immutable history row created once per successful analysis."""
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    job_title: str
    company_name: str
    job_description: str
    resume_text: str
    outreach_tone: str
    match_score: int
    technical_score: int
    experience_score: int
    domain_score: int
    matching_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    outreach_message: str
    improvement_suggestions: List[str] = Field(default_factory=list)
    created_at: datetime

    def to_response(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "candidateName": self.candidate_name,
            "candidateEmail": self.candidate_email,
            "jobTitle": self.job_title,
            "companyName": self.company_name,
            "jobDescription": self.job_description,
            "resumeText": self.resume_text,
            "outreachTone": self.outreach_tone,
            "matchScore": self.match_score,
            "technicalScore": self.technical_score,
            "experienceScore": self.experience_score,
            "domainScore": self.domain_score,
            "matchingSkills": list(self.matching_skills),
            "missingSkills": list(self.missing_skills),
            "outreachMessage": self.outreach_message,
            "improvementSuggestions": list(self.improvement_suggestions),
            "createdAt": self.created_at.isoformat(),
        }


class AnalysisOutcome(BaseModel):
    """Successful admission: the persisted record plus the response payload."""
    model_config = ConfigDict(frozen=True)

    record: AnalysisRecord
    usage_count: int
    ledger_committed: bool = True

    def to_response(self) -> dict:
        record = self.record
        return {
            "id": record.id,
            "overallScore": record.match_score,
            "technicalScore": record.technical_score,
            "experienceScore": record.experience_score,
            "domainScore": record.domain_score,
            "matchingSkills": list(record.matching_skills),
            "missingSkills": list(record.missing_skills),
            "outreachMessage": record.outreach_message,
            "improvementSuggestions": list(record.improvement_suggestions),
            "timestamp": record.created_at.isoformat(),
        }
