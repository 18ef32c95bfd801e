"""Store selection: SQL when a database URL is configured, in-memory otherwise."""

import logging
from typing import Optional

from talentmatch.core.config import Settings, settings
from talentmatch.core.database import build_engine
from talentmatch.features.storage.base import Stores
from talentmatch.features.storage.memory import build_memory_stores
from talentmatch.features.storage.sql import build_sql_stores


logger = logging.getLogger(__name__)


def build_stores(settings_obj: Optional[Settings] = None) -> Stores:
    cfg = settings_obj or settings
    url = cfg.TEST_DATABASE_URL or cfg.DATABASE_URL
    if url:
        return build_sql_stores(build_engine(url))
    logger.warning("[storage] DATABASE_URL not set, using in-memory stores")
    return build_memory_stores()
