"""
Transaction Service

Every write to the transactions table goes through here so that the month
(per day) and year (per month) history rollups always equal the sum of the
stored transactions. Nothing in this module commits; the caller owns the
unit of work.
"""
import logging
from datetime import date
from typing import Dict, Any, List, Optional

from app.database.db_service import DatabaseService
from app.services.transaction_classifier import INCOME

logger = logging.getLogger(__name__)


class TransactionNotFoundError(Exception):
    """Raised when a transaction id does not exist for the user."""


class CategoryMismatchError(Exception):
    """Raised when a category is missing, owned by another user or of the other kind."""


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def apply_to_history(db: DatabaseService, user_id: str, day: date, kind: str, amount: float):
    """
    Add ``amount`` to the day and month rollups of ``kind``.

    A negative amount removes a previously applied contribution.
    """
    field = "income" if kind == INCOME else "expense"

    db.increment(
        "month_history",
        {"user_id": user_id, "day": day.day, "month": day.month, "year": day.year},
        {field: amount},
    )
    db.increment(
        "year_history",
        {"user_id": user_id, "month": day.month, "year": day.year},
        {field: amount},
    )


def _check_category(db: DatabaseService, user_id: str, category_id: str, kind: str) -> Dict[str, Any]:
    category = db.find_one("categories", {"id": category_id, "user_id": user_id})
    if not category:
        raise CategoryMismatchError(f"Category {category_id} not found")
    if category["type"] != kind:
        raise CategoryMismatchError(
            f"Category '{category['name']}' is a {category['type']} category, not {kind}"
        )
    return category


def get_transaction(db: DatabaseService, user_id: str, transaction_id: str) -> Dict[str, Any]:
    transaction = db.find_one("transactions", {"id": transaction_id, "user_id": user_id})
    if not transaction:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return transaction


def list_transactions(db: DatabaseService, user_id: str, start: Optional[date] = None,
                      end: Optional[date] = None, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    """Transactions of one user, newest first, optionally limited to [start, end]."""
    query = {"user_id": user_id}
    if kind:
        query["type"] = kind
    return db.find_range("transactions", query, "date", start, end, descending=True)


def create_transaction(db: DatabaseService, user_id: str, amount: float, day: date, kind: str,
                       category_id: str, description: str = "",
                       check_category: bool = True) -> Dict[str, Any]:
    """
    Insert a transaction and add it to the history rollups.

    Args:
        db: Database service bound to the caller's session
        user_id: Owner of the transaction
        amount: Positive amount
        day: Booking day
        kind: "income" or "expense"
        category_id: Category of the same kind owned by the user
        description: Free text
        check_category: Skip the ownership/kind check when the caller
            already resolved the category itself

    Returns:
        The stored transaction
    """
    if check_category:
        _check_category(db, user_id, category_id, kind)

    transaction = db.insert("transactions", {
        "user_id": user_id,
        "category_id": category_id,
        "amount": amount,
        "description": description or "",
        "date": day,
        "type": kind,
    })
    apply_to_history(db, user_id, day, kind, amount)
    return transaction


def update_transaction(db: DatabaseService, user_id: str, transaction_id: str,
                       changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update a transaction, moving its rollup contribution along with it.

    ``changes`` may contain amount, date, type, category_id and description;
    None values are ignored.
    """
    existing = get_transaction(db, user_id, transaction_id)
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        return existing

    old_day = _as_date(existing["date"])
    new_day = _as_date(changes.get("date", old_day))
    new_kind = changes.get("type", existing["type"])
    new_kind = getattr(new_kind, "value", new_kind)
    new_amount = changes.get("amount", existing["amount"])
    new_category_id = changes.get("category_id", existing["category_id"])

    if "category_id" in changes or new_kind != existing["type"]:
        _check_category(db, user_id, new_category_id, new_kind)

    apply_to_history(db, user_id, old_day, existing["type"], -existing["amount"])

    update_data = {
        "amount": new_amount,
        "date": new_day,
        "type": new_kind,
        "category_id": new_category_id,
    }
    if "description" in changes:
        update_data["description"] = changes["description"]
    db.update("transactions", transaction_id, update_data)

    apply_to_history(db, user_id, new_day, new_kind, new_amount)

    logger.debug(f"Updated transaction {transaction_id} for user {user_id}")
    return get_transaction(db, user_id, transaction_id)


def delete_transaction(db: DatabaseService, user_id: str, transaction_id: str) -> Dict[str, Any]:
    """Delete a transaction and remove it from the history rollups."""
    existing = get_transaction(db, user_id, transaction_id)
    db.delete("transactions", transaction_id)
    apply_to_history(db, user_id, _as_date(existing["date"]), existing["type"], -existing["amount"])
    return existing


def rebuild_history(db: DatabaseService, user_id: str) -> int:
    """
    Recompute the user's month and year rollups from the stored transactions.

    Returns:
        Number of transactions replayed
    """
    db.delete_many("month_history", {"user_id": user_id})
    db.delete_many("year_history", {"user_id": user_id})

    transactions = db.find("transactions", {"user_id": user_id}, order_by="date")
    for transaction in transactions:
        apply_to_history(db, user_id, _as_date(transaction["date"]), transaction["type"], transaction["amount"])

    logger.info(f"Rebuilt history for user {user_id} from {len(transactions)} transactions")
    return len(transactions)
