"""Recompute stored customization records from cached order metadata.

Usage: python scripts/backfill_customizations.py [--tenant-id N] [--only-missing]
"""

import argparse
import logging

from orderflow.core.logging_config import configure_logging
from orderflow.database.db import get_db_session
from orderflow.services.order_cache_service import OrderCacheService

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--tenant-id", type=int, default=None)
    parser.add_argument("--only-missing", action="store_true")
    args = parser.parse_args(argv)

    configure_logging()
    with get_db_session() as db:
        stats = OrderCacheService(db).backfill_customizations(tenant_id=args.tenant_id, only_missing=args.only_missing)
    print(
        f"Scanned {stats.scanned} orders: {stats.updated} updated, "
        f"{stats.cleared} cleared, {stats.unchanged} unchanged."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
