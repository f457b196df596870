from fastapi import APIRouter, Depends, UploadFile, File, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from typing import Optional
from pathlib import Path
import logging
import os
import re
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.schemas import User, ImportResponse
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.parsers.statement_parser import StatementFileError, INVALID_FORMAT_MESSAGE, XLSX_SIGNATURE
from app.services.statement_importer import import_statement
from app.config import settings

router = APIRouter(prefix="/transactions", tags=["import"])
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

ALLOWED_EXTENSIONS = {'.csv', '.xlsx', '.xlsm'}

NO_FILE_MESSAGE = "No file provided"
IMPORT_FAILED_MESSAGE = "Failed to import transactions"


def sanitize_filename(filename: str) -> str:
    """
    Sanitize an uploaded filename for logging and format detection.

    - Removes path components and traversal sequences
    - Removes control and special characters
    - Limits length, preserving the extension
    """
    filename = os.path.basename(filename or "")
    filename = filename.replace('..', '').replace('/', '').replace('\\', '')
    filename = re.sub(r'[\x00-\x1f\x7f]', '', filename)
    filename = re.sub(r'[^\w\s.\-]', '_', filename, flags=re.UNICODE)

    name, ext = os.path.splitext(filename)
    if len(name) > 200:
        name = name[:200]
    return f"{name}{ext}" if name or ext else "upload"


def allowed_file(filename: str, content: bytes) -> bool:
    """Accept known statement extensions, or any upload that is an xlsx container."""
    if content.startswith(XLSX_SIGNATURE):
        return True
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/import", response_model=ImportResponse)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_transactions(
    request: Request,
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """
    Import transactions from a CSV or Excel bank statement.

    Rows that cannot be parsed are skipped and counted; file-level problems
    return {"error": ...} instead.
    """
    if file is None or not file.filename:
        return _error(NO_FILE_MESSAGE, status.HTTP_400_BAD_REQUEST)

    filename = sanitize_filename(file.filename)
    content = await file.read()

    if not allowed_file(filename, content):
        logger.warning(f"Rejected upload {filename} from user {current_user.id}: unsupported file type")
        return _error(INVALID_FORMAT_MESSAGE, status.HTTP_400_BAD_REQUEST)

    logger.info(f"Importing statement {filename} ({len(content)} bytes) for user {current_user.id}")

    db = get_db_service(session)
    try:
        # Parsing and the per-row commits are blocking; keep them off the event loop
        result = await run_in_threadpool(import_statement, db, current_user.id, content, filename)
    except StatementFileError as e:
        logger.warning(f"Statement {filename} rejected: {e}")
        return _error(str(e), status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception(f"Unexpected error importing {filename} for user {current_user.id}")
        session.rollback()
        return _error(IMPORT_FAILED_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.to_dict()
