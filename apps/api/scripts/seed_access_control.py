"""Seed system permissions, system roles and (optionally) starter accounts (ops script).

Run: python scripts/seed_access_control.py [--with-accounts] [--commit]
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import get_db_sync
    from services.bootstrap import STARTER_ACCOUNTS, run_bootstrap

    parser = argparse.ArgumentParser()
    parser.add_argument("--with-accounts", action="store_true", help="Also create the starter accounts")
    parser.add_argument(
        "--password",
        default=os.getenv("SEED_ACCOUNT_PASSWORD"),
        help="password for starter accounts (default: SEED_ACCOUNT_PASSWORD)",
    )
    parser.add_argument("--commit", action="store_true", help="Persist changes (default: dry-run)")
    args = parser.parse_args()

    if args.with_accounts and not args.password:
        print("ERROR: missing SEED_ACCOUNT_PASSWORD (or pass --password)")
        return 2

    db = get_db_sync()
    try:
        counts = run_bootstrap(db, with_accounts=args.with_accounts, password=args.password)
        print(f"Permissions: {counts['permissions']}")
        print(f"Roles: {counts['roles']}")
        if args.with_accounts:
            print(f"New accounts: {counts['accounts']} (of {len(STARTER_ACCOUNTS)})")

        if not args.commit:
            db.rollback()
            print("DRY_RUN: rolled back")
            return 0

        db.commit()
        print(">>> Access control seeded")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
