# control-plane/scripts/migrate_legacy.py
"""
Migrate legacy per-Agent subnets

    kakuremichi-migrate backfill-virtual-ips [--dry-run]
    kakuremichi-migrate subnets-to-tunnels --gateway-id <id> [--dry-run]
"""

import argparse
import logging
import sys

from config import settings
from core.exceptions import NotFoundError
from core.legacy import backfill_virtual_ips, migrate_agent_subnets
from database.session import get_db_session, init_db

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Legacy agent subnet migration")
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    parser_backfill = subparsers.add_parser(
        "backfill-virtual-ips",
        help="Set each agent's virtual_ip to .100 of its legacy subnet"
    )
    parser_backfill.add_argument("--dry-run", action="store_true", help="Report without writing")

    parser_tunnels = subparsers.add_parser(
        "subnets-to-tunnels",
        help="Create a tunnel to a gateway for every legacy agent subnet"
    )
    parser_tunnels.add_argument("--gateway-id", required=True, help="Gateway the tunnels terminate at")
    parser_tunnels.add_argument("--dry-run", action="store_true", help="Report without writing")

    args = parser.parse_args(argv)

    init_db()
    db = get_db_session()
    try:
        if args.cmd == "backfill-virtual-ips":
            result = backfill_virtual_ips(db, dry_run=args.dry_run)
            logger.info(f"Updated {len(result['updated'])} agents, skipped {len(result['skipped'])}")
        else:
            result = migrate_agent_subnets(db, args.gateway_id, dry_run=args.dry_run)
            logger.info(f"Migrated {len(result['migrated'])} agents, skipped {len(result['skipped'])}")
    except NotFoundError as e:
        logger.error(str(e))
        return 1
    finally:
        db.close()

    if args.dry_run:
        logger.info("Dry run, nothing written")
    return 0


if __name__ == "__main__":
    sys.exit(main())
