"""
Create an HR or office account, e.g. the first HR user of a new deployment.

Usage: python -m scripts.create_staff_user --role hr --email hr@ubaguio.edu \
           --firstname Maria --lastname Santos [--office "Library"]

The password is read from STAFF_PASSWORD or asked for interactively.
"""
import argparse
import getpass
import logging
import os
import sys

from fastapi import HTTPException

from database import connect
from logging_config import setup_logging
from services.user_service import STAFF_ROLES, create_user

logger = logging.getLogger("scripts.create_staff_user")


def main(argv=None, ask_password=getpass.getpass) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--role", choices=STAFF_ROLES, required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--firstname", required=True)
    parser.add_argument("--lastname", required=True)
    parser.add_argument("--office", dest="office_name", help="office name (office users)")
    args = parser.parse_args(argv)
    setup_logging()

    password = os.getenv("STAFF_PASSWORD") or ask_password("Password: ")
    if len(password) < 6:
        logger.error("Password must be at least 6 characters")
        return 1

    try:
        client, db = connect()
        try:
            user = create_user(db, args.firstname, args.lastname, args.email, password,
                               role=args.role, office_name=args.office_name)
        finally:
            client.close()
    except HTTPException as exc:
        logger.error("Could not create user: %s", exc.detail)
        return 1
    except Exception:
        logger.exception("create_staff_user failed")
        return 1

    logger.info("Created %s account %s (%s)", args.role, user["_id"], user["email"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
