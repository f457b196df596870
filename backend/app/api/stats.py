from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Literal, Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
from app.models.schemas import BalanceStats, CategoryStat, HistoryPoint, Overview, User
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.services import stats_service

router = APIRouter(prefix="/stats", tags=["stats"])


def _check_range(start: date, end: date):
    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'from' must not be after 'to'"
        )


@router.get("/balance", response_model=BalanceStats)
async def get_balance(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    _check_range(start, end)
    db = get_db_service(session)
    return stats_service.get_balance_stats(db, current_user.id, start, end)


@router.get("/categories", response_model=List[CategoryStat])
async def get_categories_stats(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    _check_range(start, end)
    db = get_db_service(session)
    return stats_service.get_category_stats(db, current_user.id, start, end)


@router.get("/history-periods", response_model=List[int])
async def get_history_periods(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    return stats_service.get_history_periods(db, current_user.id)


@router.get("/history", response_model=List[HistoryPoint])
async def get_history(
    timeframe: Literal["month", "year"],
    year: int = Query(..., ge=1900, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    try:
        return stats_service.get_history_data(db, current_user.id, timeframe, year, month)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/overview", response_model=Overview)
async def get_overview(
    reference: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    reference_dt = datetime.combine(reference, datetime.min.time()) if reference else None
    return stats_service.get_overview(db, current_user.id, reference_dt)
