"""
talentmatch/features/storage/sql.py

SQLAlchemy Core stores over the users, analyses and billing_events tables.

Works against PostgreSQL in production and SQLite in tests.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from talentmatch.core.database import (
    analyses,
    as_utc,
    billing_events,
    build_session_factory,
    create_all_tables,
    session_scope,
    users,
)
from talentmatch.core.errors import ConflictError
from talentmatch.features.storage.base import Stores, check_user_fields
from talentmatch.models.analysis import AnalysisRecord
from talentmatch.models.user import User


logger = logging.getLogger(__name__)


def _row_to_user(row) -> User:
    return User(
        user_id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        plan=row.plan,
        subscription_status=row.subscription_status,
        stripe_customer_id=row.stripe_customer_id,
        usage_count=row.usage_count,
        usage_reset_date=as_utc(row.usage_reset_date),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _row_to_record(row) -> AnalysisRecord:
    return AnalysisRecord(
        id=row.id,
        user_id=row.user_id,
        candidate_name=row.candidate_name,
        candidate_email=row.candidate_email,
        job_title=row.job_title,
        company_name=row.company_name,
        job_description=row.job_description,
        resume_text=row.resume_text,
        outreach_tone=row.outreach_tone,
        match_score=row.match_score,
        technical_score=row.technical_score,
        experience_score=row.experience_score,
        domain_score=row.domain_score,
        matching_skills=list(row.matching_skills or []),
        missing_skills=list(row.missing_skills or []),
        outreach_message=row.outreach_message,
        improvement_suggestions=list(row.improvement_suggestions or []),
        created_at=as_utc(row.created_at),
    )


class SqlUserStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _fetch_one(self, query) -> Optional[User]:
        with session_scope(self._session_factory) as session:
            row = session.execute(query).first()
            return _row_to_user(row) if row else None

    def get_user(self, user_id: int) -> Optional[User]:
        return self._fetch_one(select(users).where(users.c.id == user_id))

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._fetch_one(select(users).where(users.c.email == (email or "").strip().lower()))

    def get_user_by_customer(self, customer_id: str) -> Optional[User]:
        if not customer_id:
            return None
        return self._fetch_one(select(users).where(users.c.stripe_customer_id == customer_id))

    def create_user(self, *, email: str, password_hash: str, first_name: str, last_name: str, now: datetime) -> User:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    insert(users).values(
                        email=email.strip().lower(),
                        password_hash=password_hash,
                        first_name=first_name,
                        last_name=last_name,
                        plan="free",
                        subscription_status="inactive",
                        usage_count=0,
                        usage_reset_date=now,
                        created_at=now,
                        updated_at=now,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError:
            raise ConflictError("User with this email already exists")
        return self.get_user(user_id)

    def update_user(self, user_id: int, **fields: Any) -> Optional[User]:
        check_user_fields(fields)
        values = dict(fields)
        values["updated_at"] = datetime.now(timezone.utc)
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(update(users).where(users.c.id == user_id).values(**values))
                if result.rowcount == 0:
                    return None
        except IntegrityError:
            raise ConflictError("Stripe customer already linked to another user")
        return self.get_user(user_id)

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
        # Conditional UPDATE: concurrent writers in other processes cannot be overwritten
        query = (
            update(users)
            .where(users.c.id == user_id)
            .where(users.c.usage_count == seen_count)
            .where(users.c.usage_reset_date == seen_reset_date)
            .values(usage_count=usage_count, usage_reset_date=usage_reset_date, updated_at=datetime.now(timezone.utc))
        )
        with session_scope(self._session_factory) as session:
            return session.execute(query).rowcount == 1

    def list_users(self) -> List[User]:
        with session_scope(self._session_factory) as session:
            rows = session.execute(select(users).order_by(users.c.id)).all()
            return [_row_to_user(row) for row in rows]


class SqlAnalysisStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create_analysis(self, user_id: int, fields: Dict[str, Any]) -> AnalysisRecord:
        with session_scope(self._session_factory) as session:
            result = session.execute(insert(analyses).values(user_id=user_id, **fields))
            analysis_id = result.inserted_primary_key[0]
        return AnalysisRecord(id=analysis_id, user_id=user_id, **fields)

    def list_analyses(self, user_id: int, limit: int = 10) -> List[AnalysisRecord]:
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(analyses)
                .where(analyses.c.user_id == user_id)
                .order_by(analyses.c.created_at.desc(), analyses.c.id.desc())
                .limit(limit)
            ).all()
            return [_row_to_record(row) for row in rows]

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        with session_scope(self._session_factory) as session:
            row = session.execute(select(analyses).where(analyses.c.id == analysis_id)).first()
            return _row_to_record(row) if row else None

    def list_analyses_since(self, user_id: int, since: datetime) -> List[AnalysisRecord]:
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(analyses)
                .where(analyses.c.user_id == user_id)
                .where(analyses.c.created_at >= since)
                .order_by(analyses.c.created_at, analyses.c.id)
            ).all()
            return [_row_to_record(row) for row in rows]


class SqlBillingEventStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def record_event(self, event_id: str, event_type: str, payload_hash: str) -> bool:
        """Insert the event id; False when it was already recorded."""
        try:
            with session_scope(self._session_factory) as session:
                session.execute(
                    insert(billing_events).values(
                        stripe_event_id=event_id,
                        event_type=event_type,
                        payload_hash=payload_hash,
                        received_at=datetime.now(timezone.utc),
                        processed=False,
                    )
                )
            return True
        except IntegrityError:
            return False

    def mark_processed(self, event_id: str, error: Optional[str] = None) -> None:
        with session_scope(self._session_factory) as session:
            session.execute(
                update(billing_events)
                .where(billing_events.c.stripe_event_id == event_id)
                .values(
                    processed=error is None,
                    processed_at=datetime.now(timezone.utc),
                    error=error,
                )
            )

    def is_processed(self, event_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            row = session.execute(
                select(billing_events.c.processed).where(billing_events.c.stripe_event_id == event_id)
            ).first()
            return bool(row and row.processed)


def build_sql_stores(engine: Engine) -> Stores:
    create_all_tables(engine)
    factory = build_session_factory(engine)
    logger.info("[storage] using SQL stores", extra={"dialect": engine.dialect.name})
    return Stores(
        users=SqlUserStore(factory),
        analyses=SqlAnalysisStore(factory),
        billing_events=SqlBillingEventStore(factory),
        backend="sql",
        engine=engine,
    )
