#!/usr/bin/env python3
"""
Database Reset Script for potflow

This script clears all data from the database while preserving the table structure.
Useful for testing and when you need to start fresh.

Usage:
    python reset_db.py                    # Clear everything
    python reset_db.py --keep-accounts    # Clear automations and pending approvals only
"""

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from potflow.automation.rules import Automation
from potflow.config import load_settings
from potflow.db import get_db_session, init_engine
from potflow.models import LinkedAccount, PendingApproval, Pot


def reset_database(keep_accounts: bool = False):
    """Delete rows in reverse dependency order."""
    models = [Automation, PendingApproval]
    if not keep_accounts:
        models += [Pot, LinkedAccount]

    print("🔄 Starting database reset...")
    try:
        with next(get_db_session()) as db:
            for model in models:
                deleted = db.query(model).delete()
                print(f"🗑️  Cleared {model.__tablename__}: {deleted} records")
            db.commit()
    except SQLAlchemyError as e:
        print(f"❌ Error during database reset: {e}")
        sys.exit(1)
    print("✅ Database reset completed successfully!")


def main():
    parser = argparse.ArgumentParser(description="potflow Database Reset Tool")
    parser.add_argument("--keep-accounts", action="store_true",
                        help="Keep linked accounts and pots (and their tokens)")
    args = parser.parse_args()

    settings = load_settings()
    print(f"⚠️  WARNING: This will delete data from {settings.database_url}")
    response = input("Are you sure you want to continue? (yes/no): ").lower().strip()
    if response not in ["yes", "y"]:
        print("❌ Database reset cancelled.")
        sys.exit(0)

    init_engine(settings.database_url)
    reset_database(keep_accounts=args.keep_accounts)


if __name__ == "__main__":
    main()
