"""Usage ledger reconciliation job.

Run with: python -m talentmatch.workers.reconcile_usage [--fix] [--limit N]
"""
import argparse
import json
import logging
from typing import List, Optional

from talentmatch.core.config import settings
from talentmatch.core.logging import configure_logging
from talentmatch.features.storage.factory import build_stores
from talentmatch.features.usage.reconcile import reconcile_usage

logger = logging.getLogger("talentmatch.reconcile")


def main(argv: Optional[List[str]] = None) -> dict:
    parser = argparse.ArgumentParser(description="Reconcile per-user usage counts with stored analyses.")
    parser.add_argument("--fix", action="store_true", help="lower over-counted users to their record count")
    parser.add_argument("--limit", type=int, default=100, help="maximum corrections to apply")
    args = parser.parse_args(argv)

    configure_logging(settings.ENV)
    stores = build_stores(settings)
    if stores.backend != "sql":
        logger.warning("[reconcile] no DATABASE_URL configured; nothing persistent to reconcile")

    result = reconcile_usage(stores, fix=args.fix, limit=args.limit)
    print(json.dumps(result, indent=2))
    return result


if __name__ == "__main__":
    main()
