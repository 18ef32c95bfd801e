import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Auth
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_EXPIRES_DAYS: int = 7

    # Scoring engine (Groq)
    GROQ_API_KEY: Optional[str] = None
    SCORING_MODEL: str = "llama-3.1-8b-instant"
    SCORING_TIMEOUT_SECONDS: float = 30.0
    SCORING_FALLBACK_ENABLED: bool = False

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_STARTER_PRICE_ID: Optional[str] = None
    STRIPE_PRO_PRICE_ID: Optional[str] = None

    # App URLs
    BASE_URL: str = "http://localhost:5000"
    CORS_ORIGINS: str = "http://localhost:5173"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


# Keys each feature needs to run for real; without them the feature is
# degraded (in-memory storage, fallback scoring, billing disabled).
FEATURE_KEYS = {
    "storage": ("DATABASE_URL",),
    "scoring": ("GROQ_API_KEY",),
    "billing": ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET"),
}


def missing_feature_keys(cfg: Settings) -> dict[str, list[str]]:
    missing = {}
    for feature, keys in FEATURE_KEYS.items():
        absent = [key for key in keys if not getattr(cfg, key, None)]
        if absent:
            missing[feature] = absent
    # A live Stripe key with no prices means checkout can never succeed
    if getattr(cfg, "STRIPE_SECRET_KEY", None):
        prices = [key for key in ("STRIPE_STARTER_PRICE_ID", "STRIPE_PRO_PRICE_ID") if not getattr(cfg, key, None)]
        if prices:
            missing.setdefault("billing", []).extend(prices)
    return missing


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Report unconfigured features; raise RuntimeError instead of warning when strict.

    Only key names are reported, never values.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("talentmatch")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    missing = missing_feature_keys(cfg)
    if not missing:
        return True

    summary = "; ".join(f"{feature}: {', '.join(keys)}" for feature, keys in missing.items())
    if strict_mode:
        raise RuntimeError(f"Missing required configuration ({summary})")
    log.warning("Missing configuration, running degraded (%s)", summary)
    return True
