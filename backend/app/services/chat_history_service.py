"""
Assistant chat history

The client owns the conversation and saves it as a whole; saving replaces
whatever was stored for the user before.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from app.database.db_service import DatabaseService

logger = logging.getLogger(__name__)


def _as_utc_naive(value: datetime) -> datetime:
    # Stored without offset so ordering is the same on every backend
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def get_history(db: DatabaseService, user_id: str) -> List[Dict[str, Any]]:
    """Messages of one user, oldest first."""
    return db.find("chat_messages", {"user_id": user_id}, order_by="timestamp")


def replace_history(db: DatabaseService, user_id: str, messages: Iterable[Dict[str, Any]]) -> int:
    """
    Replace the user's stored conversation in one commit.

    Args:
        messages: dicts with message_id, role, content, tool_name, timestamp

    Returns:
        Number of messages stored
    """
    try:
        db.delete_many("chat_messages", {"user_id": user_id})
        count = 0
        for message in messages:
            db.insert("chat_messages", {
                "user_id": user_id,
                "message_id": message["message_id"],
                "role": message["role"],
                "content": message.get("content") or "",
                "tool_name": message.get("tool_name"),
                "timestamp": _as_utc_naive(message["timestamp"]),
            })
            count += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Saved {count} chat messages for user {user_id}")
    return count


def clear_history(db: DatabaseService, user_id: str) -> int:
    deleted = db.delete_many("chat_messages", {"user_id": user_id})
    db.session.commit()
    return deleted
