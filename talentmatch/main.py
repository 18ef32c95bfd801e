import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from the working directory's .env before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from talentmatch.api import analyses, auth, billing, health, metrics
from talentmatch.core.config import settings, validate_config
from talentmatch.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from talentmatch.core.logging import configure_logging
from talentmatch.core.middleware.metrics import MetricsMiddleware
from talentmatch.core.middleware.request_id import RequestIdMiddleware
from talentmatch.core.services import AppServices, build_services
from talentmatch.core.validation import validate_env


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("talentmatch")
    services: AppServices = app.state.services
    logger.info(
        "Starting TalentMatch backend...",
        extra={"storage": services.stores.backend, "billing_enabled": services.billing is not None},
    )
    try:
        yield
    finally:
        logger.info("Stopping TalentMatch backend...")


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: prebuilt service container (tests); built from settings otherwise
    """
    if services is None:
        configure_logging(settings.ENV)
        validate_env()
        validate_config(strict=getattr(settings, "CONFIG_STRICT", False))
        services = build_services(settings)

    app = FastAPI(title="TalentMatch - Backend", lifespan=lifespan)
    app.state.services = services

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.root_router, tags=["health"])
    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(analyses.router, tags=["analyses"])
    app.include_router(billing.router, prefix="/api", tags=["billing"])
    app.include_router(metrics.router, tags=["metrics"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("talentmatch.main:create_app", factory=True, host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
