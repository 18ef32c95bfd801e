"""
talentmatch/features/storage/base.py

Store interfaces shared by the in-memory and SQL implementations.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from talentmatch.models.analysis import AnalysisRecord
from talentmatch.models.user import User


# Fields update_user() will accept. id/email/password/created_at are fixed.
USER_MUTABLE_FIELDS = frozenset({
    "first_name",
    "last_name",
    "plan",
    "subscription_status",
    "stripe_customer_id",
    "usage_count",
    "usage_reset_date",
})


class UserStore(Protocol):
    def get_user(self, user_id: int) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def get_user_by_customer(self, customer_id: str) -> Optional[User]: ...

    def create_user(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        now: datetime,
    ) -> User: ...

    def update_user(self, user_id: int, **fields: Any) -> Optional[User]: ...

    def compare_and_set_usage(
        self,
        user_id: int,
        *,
        seen_count: int,
        seen_reset_date: datetime,
        usage_count: int,
        usage_reset_date: datetime,
    ) -> bool:
        """Write the ledger only if it still holds (seen_count, seen_reset_date)."""
        ...

    def list_users(self) -> List[User]: ...


class AnalysisStore(Protocol):
    def create_analysis(self, user_id: int, fields: Dict[str, Any]) -> AnalysisRecord: ...

    def list_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]: ...

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]: ...

    def list_analyses_since(self, user_id: int, since: datetime) -> List[AnalysisRecord]: ...


class BillingEventStore(Protocol):
    def record_event(self, event_id: str, event_type: str, payload_hash: str) -> bool: ...

    def mark_processed(self, event_id: str, error: Optional[str] = None) -> None: ...

    def is_processed(self, event_id: str) -> bool: ...


@dataclass
class Stores:
    users: UserStore
    analyses: AnalysisStore
    billing_events: BillingEventStore
    backend: str = "memory"
    # SQLAlchemy engine behind the SQL stores; None for in-memory
    engine: Optional[Any] = None


def check_user_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - USER_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
    count = fields.get("usage_count")
    if count is not None and count < 0:
        raise ValueError("usage_count cannot be negative")
