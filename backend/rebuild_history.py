#!/usr/bin/env python3
"""
Rebuild month/year history rollups from transactions

Usage:
    python rebuild_history.py [user_id]

Without a user id every user is rebuilt. Use after a failed import or manual
database edits left the dashboard totals out of sync with the transactions.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.database.postgres_db import get_db_context
from app.database.db_service import get_db_service
from app.services.transaction_service import rebuild_history


def main(argv):
    print("=" * 80)
    print("Rebuild History Rollups")
    print("=" * 80)

    with get_db_context() as session:
        db = get_db_service(session)

        if len(argv) > 1:
            user_ids = [argv[1]]
        else:
            user_ids = [user["id"] for user in db.find("users", {})]

        if not user_ids:
            print("No users found")
            return 0

        for user_id in user_ids:
            count = rebuild_history(db, user_id)
            print(f"✓ {user_id}: replayed {count} transactions")

    return 0


if __name__ == "__main__":
    exit(main(sys.argv))
