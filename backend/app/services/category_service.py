"""
Category lookups shared by the importer, the API and the assistant tools
"""
import logging
from typing import Dict, Any, List, Optional

from sqlalchemy.exc import IntegrityError

from app.database.db_service import DatabaseService

logger = logging.getLogger(__name__)

IMPORTED_CATEGORY_NAME = "Imported"
UNKNOWN_CATEGORY_NAME = "Unknown"
UNKNOWN_CATEGORY_ICON = "❓"


def find_category(db: DatabaseService, user_id: str, name: str, kind: str) -> Optional[Dict[str, Any]]:
    return db.find_one("categories", {"user_id": user_id, "name": name, "type": kind})


def get_or_create_category(db: DatabaseService, user_id: str, name: str, kind: str, icon: str) -> Dict[str, Any]:
    """
    Return the user's category with this name and kind, creating it if needed.

    The icon is only used when the category is created. The insert is
    committed on its own; when a concurrent request created the same
    category first, the unique constraint rejects ours and the existing
    row is returned instead.
    """
    existing = find_category(db, user_id, name, kind)
    if existing:
        return existing

    try:
        category = db.insert("categories", {
            "user_id": user_id,
            "name": name,
            "type": kind,
            "icon": icon,
        })
        db.session.commit()
        logger.info(f"Created category '{name}' ({kind}) for user {user_id}")
        return category
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Category '{name}' ({kind}) was created concurrently for user {user_id}, reusing it")
        existing = find_category(db, user_id, name, kind)
        if existing is None:
            raise
        return existing


def list_categories(db: DatabaseService, user_id: str, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"user_id": user_id}
    if kind:
        query["type"] = kind
    return db.find("categories", query, order_by="name")


def category_lookup(db: DatabaseService, user_id: str) -> Dict[str, Dict[str, Any]]:
    """Map category id -> category for one user."""
    return {category["id"]: category for category in db.find("categories", {"user_id": user_id})}


def find_category_by_name(db: DatabaseService, user_id: str, name: str,
                          kind: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Case-insensitive lookup: exact name match first, then partial match."""
    categories = list_categories(db, user_id, kind)
    wanted = (name or "").strip().lower()
    if not wanted:
        return None

    for category in categories:
        if category["name"].lower() == wanted:
            return category
    for category in categories:
        if wanted in category["name"].lower():
            return category
    return None
