"""
Show which scholars an office user sees on the office scholar view.

Read-only.

Usage: python -m scripts.check_office_filter --office "Office Name"
"""
import argparse
import logging
import sys

from database import connect
from logging_config import setup_logging
from services.maintenance import check_office_filter

logger = logging.getLogger("scripts.check_office_filter")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--office", required=True, help="office name to check")
    args = parser.parse_args(argv)
    setup_logging()

    try:
        client, db = connect()
        try:
            report = check_office_filter(db, args.office)
        finally:
            client.close()
    except Exception:
        logger.exception("check_office_filter failed")
        return 1

    office_user = report["office_user"]
    if office_user:
        logger.info("Office user: %s %s <%s> office_name=%r", office_user.get("firstname"),
                    office_user.get("lastname"), office_user.get("email"),
                    office_user.get("office_name"))
    else:
        logger.info("No office user with office_name=%r", args.office)

    logger.info("Filter: %s", report["filter"])
    logger.info("Matching scholars: %s", len(report["matches"]))
    for scholar in report["matches"]:
        logger.info("  %s user=%s status=%s", scholar["_id"], scholar.get("user_id"),
                    scholar.get("status"))

    for row in report["all_scholars"]:
        logger.info("  %s office=%r status=%s matches=%s", row["scholar_id"],
                    row["scholar_office"], row["status"], row["office_matches"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
