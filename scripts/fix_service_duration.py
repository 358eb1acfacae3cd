"""
Credit six months of service for every scholar archived at semester end.

Periods already credited for the same archive are left alone.

Usage: python -m scripts.fix_service_duration
"""
import argparse
import logging
import sys

from database import connect
from logging_config import setup_logging
from services.maintenance import fix_service_duration

logger = logging.getLogger("scripts.fix_service_duration")


def main(argv=None) -> int:
    argparse.ArgumentParser(description=__doc__).parse_args(argv)
    setup_logging()
    try:
        client, db = connect()
        try:
            summary = fix_service_duration(db)
        finally:
            client.close()
    except Exception:
        logger.exception("fix_service_duration failed")
        return 1

    if summary["total"] == 0:
        logger.info("No archived scholars found.")
    logger.info(
        "Success: %s, skipped: %s, errors: %s, total: %s",
        summary["success"], summary["skipped"], summary["errors"], summary["total"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
