from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
from datetime import date
from sqlalchemy.orm import Session
from app.models.schemas import Transaction, TransactionCreate, TransactionUpdate, TransactionKind, User
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.services.transaction_service import (
    create_transaction,
    delete_transaction,
    list_transactions,
    update_transaction,
    TransactionNotFoundError,
    CategoryMismatchError,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=List[Transaction])
async def get_transactions(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    type: Optional[TransactionKind] = None,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    transactions = list_transactions(db, current_user.id, start, end, type.value if type else None)
    return [Transaction(**txn) for txn in transactions]


@router.post("", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def create_transaction_route(
    transaction: TransactionCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    try:
        created = create_transaction(
            db,
            current_user.id,
            amount=round(transaction.amount, 2),
            day=transaction.date,
            kind=transaction.type.value,
            category_id=transaction.category_id,
            description=transaction.description,
        )
    except CategoryMismatchError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session.commit()
    return Transaction(**created)


@router.put("/{transaction_id}", response_model=Transaction)
async def update_transaction_route(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    changes = transaction_update.model_dump(exclude_unset=True)
    if changes.get("amount") is not None:
        changes["amount"] = round(changes["amount"], 2)

    try:
        updated = update_transaction(db, current_user.id, transaction_id, changes)
    except TransactionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    except CategoryMismatchError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session.commit()
    return Transaction(**updated)


@router.delete("/{transaction_id}")
async def delete_transaction_route(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    try:
        delete_transaction(db, current_user.id, transaction_id)
    except TransactionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    session.commit()
    return {"message": "Transaction deleted successfully"}
