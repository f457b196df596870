from fastapi import APIRouter, Body, Depends, HTTPException, status
from typing import Any, Dict, Optional
import logging
from sqlalchemy.orm import Session
from app.models.schemas import ChatHistory, ChatHistorySave, ChatMessage, ToolList, User
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.services.assistant_tools import execute_tool, list_tools, UnknownToolError
from app.services import chat_history_service

router = APIRouter(prefix="/ai", tags=["assistant"])
logger = logging.getLogger(__name__)


@router.get("/tools", response_model=ToolList)
async def get_tools(current_user: User = Depends(get_current_user)):
    """Tool descriptors with JSON Schema parameters, for registering with the language model."""
    return {"tools": list_tools()}


@router.post("/tools/{tool_name}")
async def run_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    try:
        return execute_tool(db, current_user.id, tool_name, arguments)
    except UnknownToolError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown tool: {tool_name}")


@router.get("/history", response_model=ChatHistory)
async def get_chat_history(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    messages = chat_history_service.get_history(db, current_user.id)
    return ChatHistory(messages=[ChatMessage(**message) for message in messages])


@router.post("/history")
async def save_chat_history(
    history: ChatHistorySave,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Replace the stored conversation with the posted messages."""
    db = get_db_service(session)
    saved = chat_history_service.replace_history(
        db, current_user.id, [message.model_dump() for message in history.messages]
    )
    return {"success": True, "saved": saved}


@router.delete("/history")
async def delete_chat_history(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    chat_history_service.clear_history(db, current_user.id)
    return {"success": True}
