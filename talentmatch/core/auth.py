"""
Auth dependencies for the TalentMatch API.

Bearer JWTs are issued by the users service; every request builds its own
RequestContext, nothing is kept between requests.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from talentmatch.core.errors import UnauthorizedError
from talentmatch.core.logging import get_request_id
from talentmatch.core.services import AppServices, get_services
from talentmatch.features.users.service import decode_token


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    request_id: Optional[str] = None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_request_context(
    request: Request,
    authorization: Optional[str] = Header(None),
    services: AppServices = Depends(get_services),
) -> RequestContext:
    """
    Resolve the caller from `Authorization: Bearer <token>`.

    Raises:
        UnauthorizedError: missing/invalid token or the user no longer exists
    """
    token = _bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Access token required")

    user_id = decode_token(token, settings_obj=services.settings)
    if services.stores.users.get_user(user_id) is None:
        raise UnauthorizedError("Invalid or expired token")

    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return RequestContext(user_id=user_id, request_id=request_id)
