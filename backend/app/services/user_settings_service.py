"""
Per-user settings (currency, billing cycle, balances)
"""
import logging
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError

from app.config import settings as app_settings
from app.database.db_service import DatabaseService

logger = logging.getLogger(__name__)


def get_or_create_settings(db: DatabaseService, user_id: str) -> Dict[str, Any]:
    """Return the user's settings, creating the defaults on first access."""
    existing = db.find_one("user_settings", {"user_id": user_id})
    if existing:
        return existing

    try:
        created = db.insert("user_settings", {
            "user_id": user_id,
            "currency": app_settings.DEFAULT_CURRENCY,
            "billing_cycle_day": 1,
            "preferred_view": "calendar",
            "initial_balance": 0.0,
            "savings_goal": 0.0,
        })
        db.session.commit()
        logger.info(f"Created default settings for user {user_id}")
        return created
    except IntegrityError:
        db.session.rollback()
        existing = db.find_one("user_settings", {"user_id": user_id})
        if existing is None:
            raise
        return existing


def update_settings(db: DatabaseService, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    get_or_create_settings(db, user_id)
    db.update("user_settings", {"user_id": user_id}, changes)
    return db.find_one("user_settings", {"user_id": user_id})
