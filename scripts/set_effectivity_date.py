"""
Set today's date as effectivity date for SA/SM users that have none.

Usage: python -m scripts.set_effectivity_date [--yes]
"""
import argparse
import logging
import sys

from database import connect
from logging_config import setup_logging
from services.maintenance import set_effectivity_date, users_missing_effectivity_date

logger = logging.getLogger("scripts.set_effectivity_date")


def main(argv=None, ask=input) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args(argv)
    setup_logging()

    try:
        client, db = connect()
        try:
            users = users_missing_effectivity_date(db)
            if not users:
                logger.info("All scholars have effectivity dates")
                return 0

            logger.info("%s scholars don't have an effectivity date:", len(users))
            for user in users:
                logger.info("  %s %s (%s) %s", user.get("firstname"), user.get("lastname"),
                            user.get("status"), user.get("email"))

            if not args.yes:
                answer = ask("Set effectivity date to TODAY for all these scholars? (yes/no): ")
                if answer.strip().lower() not in ("y", "yes"):
                    logger.info("Cancelled")
                    return 0

            updated = set_effectivity_date(db, users)
        finally:
            client.close()
    except Exception:
        logger.exception("set_effectivity_date failed")
        return 1

    logger.info("Effectivity date set for %s scholars", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
