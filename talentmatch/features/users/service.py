"""
User domain service.
- register(stores, data)
- login(stores, credentials)
- issue_token(user_id) / decode_token(token)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from talentmatch.core.config import Settings, settings
from talentmatch.core.errors import ConflictError, UnauthorizedError
from talentmatch.features.storage.base import Stores
from talentmatch.models.user import LoginRequest, PublicUser, RegisterRequest


logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10


@dataclass(frozen=True)
class AuthResult:
    user: PublicUser
    token: str

    def to_response(self) -> dict:
        return {"user": self.user.to_response(), "token": self.token}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def issue_token(user_id: int, *, now: Optional[datetime] = None, settings_obj: Optional[Settings] = None) -> str:
    cfg = settings_obj or settings
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=cfg.JWT_EXPIRES_DAYS)).timestamp()),
    }
    return jwt.encode(payload, cfg.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str, *, settings_obj: Optional[Settings] = None) -> int:
    """Return the user id in `token`; UnauthorizedError when invalid or expired."""
    cfg = settings_obj or settings
    try:
        payload = jwt.decode(token, cfg.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid or expired token")

    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token")


def register(stores: Stores, data: RegisterRequest, *, settings_obj: Optional[Settings] = None) -> AuthResult:
    if stores.users.get_user_by_email(data.email):
        raise ConflictError("User already exists with this email")

    user = stores.users.create_user(
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        now=datetime.now(timezone.utc),
    )
    logger.info("[users] registered", extra={"user_id": user.user_id})
    return AuthResult(user=PublicUser.from_user(user), token=issue_token(user.user_id, settings_obj=settings_obj))


def login(stores: Stores, credentials: LoginRequest, *, settings_obj: Optional[Settings] = None) -> AuthResult:
    user = stores.users.get_user_by_email(credentials.email)
    if user is None or not verify_password(credentials.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    return AuthResult(user=PublicUser.from_user(user), token=issue_token(user.user_id, settings_obj=settings_obj))
