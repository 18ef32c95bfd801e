"""
SQL schema and engine helpers for the users, analyses and billing_events
tables.

Engines are built per store set (see features/storage); nothing here holds
a process-wide connection. PostgreSQL gets a bounded QueuePool, SQLite is
used by tests and single-process development.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Generator, Optional
import logging

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Index, ForeignKey
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func, false


logger = logging.getLogger(__name__)

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600

_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(url: str) -> Engine:
    """Create an engine for `url` with pooling suited to the backend."""
    if not url:
        raise ValueError("A database URL is required; set DATABASE_URL or TEST_DATABASE_URL")
    if url.startswith("sqlite"):
        sqlite_args = {"check_same_thread": False}
        if url in _MEMORY_SQLITE_URLS:
            # Every thread must see the same in-memory database
            return create_engine(url, connect_args=sqlite_args, poolclass=StaticPool)
        return create_engine(url, connect_args=sqlite_args)
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(session_factory) -> Generator[Session, None, None]:
    """Commit on success, roll back on error, always close."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine) -> None:
    """Idempotent; existing tables are left alone."""
    metadata.create_all(bind=engine)


def drop_all_tables(engine: Engine) -> None:
    """Destructive. Tests and local resets only."""
    metadata.drop_all(bind=engine)


def check_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except SQLAlchemyError as e:
        logger.warning("[database] connection check failed", extra={"error": str(e), "dialect": engine.dialect.name})
        return False
    return True


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


users = Table(
    'users',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('email', String(320), nullable=False, unique=True),
    Column('password_hash', Text, nullable=False),
    Column('first_name', String(200), nullable=False),
    Column('last_name', String(200), nullable=False),
    Column('plan', String(50), nullable=False, server_default='free'),  # free, starter, pro
    Column('stripe_customer_id', String(100), nullable=True, unique=True),
    Column('subscription_status', String(50), nullable=False, server_default='inactive'),
    Column('usage_count', Integer, nullable=False, server_default='0'),
    Column('usage_reset_date', DateTime(timezone=True), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_users_plan', 'plan'),
)

analyses = Table(
    'analyses',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('candidate_name', Text, nullable=True),
    Column('candidate_email', String(320), nullable=True),
    Column('job_title', Text, nullable=False),
    Column('company_name', Text, nullable=False),
    Column('job_description', Text, nullable=False),
    Column('resume_text', Text, nullable=False),
    Column('outreach_tone', String(50), nullable=False),
    Column('match_score', Integer, nullable=False),
    Column('technical_score', Integer, nullable=False),
    Column('experience_score', Integer, nullable=False),
    Column('domain_score', Integer, nullable=False),
    Column('matching_skills', JSON, nullable=False),
    Column('missing_skills', JSON, nullable=False),
    Column('outreach_message', Text, nullable=False),
    Column('improvement_suggestions', JSON, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    # History and monthly stats both read (user_id, created_at)
    Index('idx_analyses_user_created', 'user_id', 'created_at'),
)

# Webhook idempotency
billing_events = Table(
    'billing_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('stripe_event_id', String(100), nullable=False, unique=True),
    Column('event_type', String(100), nullable=False, index=True),
    Column('received_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('payload_hash', String(64), nullable=False),  # SHA256 of the raw body
    Column('processed', Boolean, nullable=False, server_default=false(), index=True),
    Column('processed_at', DateTime(timezone=True), nullable=True),
    Column('error', Text, nullable=True),
)
