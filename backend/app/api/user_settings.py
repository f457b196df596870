from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.models.schemas import (
    User,
    UserSettings,
    BillingCycleUpdate,
    CurrencyUpdate,
    InitialBalanceUpdate,
    SavingsGoalUpdate,
)
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.services.user_settings_service import get_or_create_settings, update_settings

router = APIRouter(prefix="/user-settings", tags=["user-settings"])


@router.get("", response_model=UserSettings)
async def get_user_settings(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    return UserSettings(**get_or_create_settings(db, current_user.id))


@router.post("/billing-cycle", response_model=UserSettings)
async def update_billing_cycle(
    update: BillingCycleUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    updated = update_settings(db, current_user.id, update.model_dump(mode="json"))
    session.commit()
    return UserSettings(**updated)


@router.post("/initial-balance", response_model=UserSettings)
async def update_initial_balance(
    update: InitialBalanceUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    updated = update_settings(db, current_user.id, update.model_dump())
    session.commit()
    return UserSettings(**updated)


@router.post("/savings-goal", response_model=UserSettings)
async def update_savings_goal(
    update: SavingsGoalUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    updated = update_settings(db, current_user.id, update.model_dump())
    session.commit()
    return UserSettings(**updated)


@router.post("/currency", response_model=UserSettings)
async def update_currency(
    update: CurrencyUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    updated = update_settings(db, current_user.id, update.model_dump())
    session.commit()
    return UserSettings(**updated)
