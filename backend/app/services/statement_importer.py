"""
Statement Importer

Drives parsed statement rows through normalization and persistence and
reports how many rows were imported or skipped.
"""
import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Dict, Any, Iterable, Optional

from app.config import settings
from app.database.db_service import DatabaseService
from app.parsers.statement_parser import parse_statement
from app.services.category_service import get_or_create_category, IMPORTED_CATEGORY_NAME
from app.services.statement_normalizer import normalize_row, NormalizedTransaction
from app.services.transaction_classifier import transaction_classifier
from app.services.transaction_service import create_transaction

logger = logging.getLogger(__name__)

SKIPPED_ADVISORY = "Some rows could not be imported, please review your data."


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0

    @property
    def message(self) -> str:
        message = f"Successfully imported {self.imported} transaction(s)"
        if self.skipped > 0:
            message += f". {self.skipped} row(s) were skipped. {SKIPPED_ADVISORY}"
        return message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "imported": self.imported,
            "skipped": self.skipped,
            "message": self.message,
        }


class StatementImporter:
    """Imports normalized statement rows for one user."""

    def __init__(self, db: DatabaseService, user_id: str, tz: Optional[tzinfo] = None):
        self.db = db
        self.user_id = user_id
        self.tz = tz or settings.import_tzinfo
        # Categories resolved during this run, keyed by kind
        self._categories: Dict[str, Dict[str, Any]] = {}

    def _category_for(self, transaction: NormalizedTransaction) -> Dict[str, Any]:
        category = self._categories.get(transaction.kind)
        if category is None:
            category = get_or_create_category(
                self.db,
                self.user_id,
                IMPORTED_CATEGORY_NAME,
                transaction.kind,
                transaction_classifier.pick_category_icon(transaction.description),
            )
            self._categories[transaction.kind] = category
        return category

    def persist(self, transaction: NormalizedTransaction):
        """Store one accepted row and its rollup contribution as a single commit."""
        category = self._category_for(transaction)
        create_transaction(
            self.db,
            self.user_id,
            amount=transaction.amount,
            day=transaction.date,
            kind=transaction.kind,
            category_id=category["id"],
            description=transaction.description,
            check_category=False,
        )
        self.db.session.commit()

    def import_rows(self, rows: Iterable[Dict[str, Any]]) -> ImportResult:
        result = ImportResult()

        for index, row in enumerate(rows, start=1):
            try:
                outcome = normalize_row(row, self.tz)
                if not outcome.accepted:
                    logger.debug(f"Skipping row {index}: {outcome.skip_reason}")
                    result.skipped += 1
                    continue

                self.persist(outcome.transaction)
                result.imported += 1
            except Exception:
                logger.exception(f"Failed to import row {index} for user {self.user_id}")
                self.db.session.rollback()
                self._categories.clear()
                result.skipped += 1

        logger.info(
            f"Statement import for user {self.user_id}: "
            f"{result.imported} imported, {result.skipped} skipped"
        )
        return result


def import_statement(db: DatabaseService, user_id: str, content: bytes,
                     filename: Optional[str] = None, tz: Optional[tzinfo] = None) -> ImportResult:
    """
    Parse a statement file and import its rows.

    Raises:
        StatementFileError: the file cannot be read or holds no rows
    """
    rows = parse_statement(content, filename)
    return StatementImporter(db, user_id, tz).import_rows(rows)
