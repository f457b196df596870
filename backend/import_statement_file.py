#!/usr/bin/env python3
"""
Import a bank statement file from disk

Usage:
    python import_statement_file.py <user_id> <statement.csv|statement.xlsx>

Runs the same import as POST /api/transactions/import, creating the user row
if it does not exist yet.
"""

import sys
import os
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.database.postgres_db import get_db_context
from app.database.db_service import get_db_service
from app.parsers.statement_parser import StatementFileError
from app.services.statement_importer import import_statement


def main(argv):
    if len(argv) != 3:
        print(__doc__)
        return 2

    user_id, path = argv[1], Path(argv[2])
    if not path.is_file():
        print(f"✗ File not found: {path}")
        return 1

    print("=" * 80)
    print(f"Importing {path.name} for user {user_id}")
    print("=" * 80)

    with get_db_context() as session:
        db = get_db_service(session)

        if not db.find_one("users", {"id": user_id}):
            db.insert("users", {"id": user_id})
            session.commit()
            print(f"✓ Created user {user_id}")

        try:
            result = import_statement(db, user_id, path.read_bytes(), path.name)
        except StatementFileError as e:
            print(f"✗ {e}")
            return 1

    print(f"\n  Imported: {result.imported}")
    print(f"  Skipped:  {result.skipped}")
    print(f"\n{result.message}")
    return 0


if __name__ == "__main__":
    exit(main(sys.argv))
