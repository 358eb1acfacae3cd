"""
Point every active scholar's schedule back at its scholar record.

Usage: python -m scripts.fix_scholar_schedules
"""
import argparse
import logging
import sys

from database import connect
from logging_config import setup_logging
from services.maintenance import fix_scholar_schedules

logger = logging.getLogger("scripts.fix_scholar_schedules")


def main(argv=None) -> int:
    argparse.ArgumentParser(description=__doc__).parse_args(argv)
    setup_logging()
    try:
        client, db = connect()
        try:
            summary = fix_scholar_schedules(db)
        finally:
            client.close()
    except Exception:
        logger.exception("fix_scholar_schedules failed")
        return 1

    logger.info(
        "Scholars checked: %s, fixed: %s, already correct: %s, no schedule: %s",
        summary["checked"], summary["fixed"], summary["already_correct"], summary["no_schedule"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
