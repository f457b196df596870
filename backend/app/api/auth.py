from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from app.models.schemas import User
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.config import settings

logger = logging.getLogger(__name__)

MAX_USER_ID_LENGTH = 255


async def get_current_user(request: Request, session: Session = Depends(get_session)) -> User:
    """
    Resolve the caller from the identity header set by the upstream auth layer.

    The users row is created the first time an identity is seen.
    """
    user_id = (request.headers.get(settings.USER_ID_HEADER) or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    db = get_db_service(session)
    user_doc = db.find_one("users", {"id": user_id})
    if user_doc is not None:
        return User(**user_doc)

    try:
        user_doc = db.insert("users", {"id": user_id})
        session.commit()
        logger.info(f"Registered new user {user_id}")
    except IntegrityError:
        session.rollback()
        user_doc = db.find_one("users", {"id": user_id})
        if user_doc is None:
            raise

    return User(**user_doc)
