"""
talentmatch/features/storage/memory.py

In-memory stores. Used when DATABASE_URL is not configured and in tests.
"""

import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from talentmatch.core.errors import ConflictError
from talentmatch.features.storage.base import Stores, check_user_fields
from talentmatch.models.analysis import AnalysisRecord
from talentmatch.models.user import User


class InMemoryUserStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._users: Dict[int, User] = {}

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        needle = (email or "").strip().lower()
        with self._lock:
            for user in self._users.values():
                if user.email == needle:
                    return user
        return None

    def get_user_by_customer(self, customer_id: str) -> Optional[User]:
        if not customer_id:
            return None
        with self._lock:
            for user in self._users.values():
                if user.stripe_customer_id == customer_id:
                    return user
        return None

    def create_user(self, *, email: str, password_hash: str, first_name: str, last_name: str, now: datetime) -> User:
        email = email.strip().lower()
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise ConflictError("User with this email already exists")
            user = User(
                user_id=next(self._ids),
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                usage_reset_date=now,
                created_at=now,
                updated_at=now,
            )
            self._users[user.user_id] = user
            return user

    def update_user(self, user_id: int, **fields: Any) -> Optional[User]:
        check_user_fields(fields)
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                return None
            customer_id = fields.get("stripe_customer_id")
            if customer_id and any(
                u.stripe_customer_id == customer_id and u.user_id != user_id for u in self._users.values()
            ):
                raise ConflictError("Stripe customer already linked to another user")
            updated = current.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
            self._users[user_id] = updated
            return updated

    def compare_and_set_usage(
        self,
        user_id: int,
        *,
        seen_count: int,
        seen_reset_date: datetime,
        usage_count: int,
        usage_reset_date: datetime,
    ) -> bool:
        check_user_fields({"usage_count": usage_count})
        with self._lock:
            current = self._users.get(user_id)
            if current is None:
                return False
            if current.usage_count != seen_count or current.usage_reset_date != seen_reset_date:
                return False
            self._users[user_id] = current.model_copy(
                update={
                    "usage_count": usage_count,
                    "usage_reset_date": usage_reset_date,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            return True

    def list_users(self) -> List[User]:
        with self._lock:
            return sorted(self._users.values(), key=lambda u: u.user_id)


class InMemoryAnalysisStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._records: Dict[int, AnalysisRecord] = {}

    def create_analysis(self, user_id: int, fields: Dict[str, Any]) -> AnalysisRecord:
        with self._lock:
            record = AnalysisRecord(id=next(self._ids), user_id=user_id, **fields)
            self._records[record.id] = record
            return record

    def list_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        with self._lock:
            rows = [r for r in self._records.values() if r.user_id == user_id]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows[:limit]

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        with self._lock:
            return self._records.get(analysis_id)

    def list_analyses_since(self, user_id: int, since: datetime) -> List[AnalysisRecord]:
        with self._lock:
            rows = [r for r in self._records.values() if r.user_id == user_id and r.created_at >= since]
        rows.sort(key=lambda r: (r.created_at, r.id))
        return rows


class InMemoryBillingEventStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._events: Dict[str, Dict[str, Any]] = {}

    def record_event(self, event_id: str, event_type: str, payload_hash: str) -> bool:
        with self._lock:
            if event_id in self._events:
                return False
            self._events[event_id] = {
                "event_type": event_type,
                "payload_hash": payload_hash,
                "received_at": datetime.now(timezone.utc),
                "processed": False,
                "error": None,
            }
            return True

    def mark_processed(self, event_id: str, error: Optional[str] = None) -> None:
        with self._lock:
            row = self._events.get(event_id)
            if row is None:
                return
            row["processed"] = error is None
            row["error"] = error

    def is_processed(self, event_id: str) -> bool:
        with self._lock:
            row = self._events.get(event_id)
            return bool(row and row["processed"])


def build_memory_stores() -> Stores:
    return Stores(
        users=InMemoryUserStore(),
        analyses=InMemoryAnalysisStore(),
        billing_events=InMemoryBillingEventStore(),
        backend="memory",
    )
