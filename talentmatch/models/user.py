"""
talentmatch/models/user.py

User model: identity, plan entitlement and usage ledger state.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from talentmatch.models.analysis import looks_like_email


class User(BaseModel):
    """
    Snapshot of a user row.

    `plan` decides the daily quota; `subscription_status` is informational
    and never gates admission. `usage_count` counts committed analyses
    since `usage_reset_date`.
    """
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    password_hash: str
    first_name: str
    last_name: str
    plan: str = "free"
    subscription_status: str = "inactive"
    stripe_customer_id: Optional[str] = None
    usage_count: int = 0
    usage_reset_date: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PublicUser(BaseModel):
    """User as returned over the API (no password hash)."""
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    plan: str
    subscription_status: str
    usage_count: int
    usage_reset_date: datetime
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(
            id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            plan=user.plan,
            subscription_status=user.subscription_status,
            usage_count=user.usage_count,
            usage_reset_date=user.usage_reset_date,
            created_at=user.created_at,
        )

    def to_response(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "plan": self.plan,
            "subscriptionStatus": self.subscription_status,
            "usageCount": self.usage_count,
            "usageResetDate": self.usage_reset_date.isoformat(),
            "createdAt": self.created_at.isoformat(),
        }


class RegisterRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    email: str
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, alias="firstName")
    last_name: str = Field(min_length=1, alias="lastName")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not looks_like_email(value):
            raise ValueError("must be a valid email address")
        return value


class LoginRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not looks_like_email(value):
            raise ValueError("must be a valid email address")
        return value
