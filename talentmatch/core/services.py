"""
Application service container.

One AppServices per app instance, stored on `app.state.services`. Tests build
their own with in-memory stores and a fake scoring engine.
"""
from dataclasses import dataclass, field
from typing import Optional

from starlette.requests import Request

from talentmatch.core.config import Settings, settings
from talentmatch.features.admission.gate import AdmissionGate
from talentmatch.features.billing.provider import BillingProvider
from talentmatch.features.billing.service import get_provider
from talentmatch.features.scoring.engine import ScoringEngine, build_scoring_engine
from talentmatch.features.storage.base import Stores
from talentmatch.features.storage.factory import build_stores
from talentmatch.features.usage.locks import UserLockRegistry


@dataclass
class AppServices:
    settings: Settings
    stores: Stores
    engine: ScoringEngine
    billing: Optional[BillingProvider] = None
    locks: UserLockRegistry = field(default_factory=UserLockRegistry)
    gate: Optional[AdmissionGate] = None

    def __post_init__(self):
        if self.gate is None:
            self.gate = AdmissionGate(self.stores, self.locks, self.engine)


def build_services(settings_obj: Optional[Settings] = None) -> AppServices:
    cfg = settings_obj or settings
    return AppServices(
        settings=cfg,
        stores=build_stores(cfg),
        engine=build_scoring_engine(cfg),
        billing=get_provider(cfg),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services
