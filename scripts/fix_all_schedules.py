"""
Convert trainee schedules of accepted applicants into scholar schedules.

Creates the missing Scholar record where needed.

Usage: python -m scripts.fix_all_schedules
"""
import argparse
import logging
import sys

from database import connect
from logging_config import setup_logging
from services.maintenance import fix_all_schedules

logger = logging.getLogger("scripts.fix_all_schedules")


def main(argv=None) -> int:
    argparse.ArgumentParser(description=__doc__).parse_args(argv)
    setup_logging()
    try:
        client, db = connect()
        try:
            summary = fix_all_schedules(db)
        finally:
            client.close()
    except Exception:
        logger.exception("fix_all_schedules failed")
        return 1

    logger.info("Schedules checked: %s", summary["checked"])
    logger.info("Converted to scholar: %s", summary["converted"])
    logger.info("Kept as trainee: %s", summary["kept_as_trainee"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
