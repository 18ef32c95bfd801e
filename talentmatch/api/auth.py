"""
Auth API routes.

- POST /api/auth/register
- POST /api/auth/login
- GET  /api/auth/me
"""
from fastapi import APIRouter, Depends

from talentmatch.core.auth import RequestContext, get_request_context
from talentmatch.core.errors import UnauthorizedError
from talentmatch.core.services import AppServices, get_services
from talentmatch.features.users import service as users_service
from talentmatch.models.user import LoginRequest, PublicUser, RegisterRequest


router = APIRouter(tags=["auth"])


@router.post("/register")
def register(body: RegisterRequest, services: AppServices = Depends(get_services)):
    result = users_service.register(services.stores, body, settings_obj=services.settings)
    return result.to_response()


@router.post("/login")
def login(body: LoginRequest, services: AppServices = Depends(get_services)):
    result = users_service.login(services.stores, body, settings_obj=services.settings)
    return result.to_response()


@router.get("/me")
def me(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    user = services.stores.users.get_user(ctx.user_id)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    return {"user": PublicUser.from_user(user).to_response()}
