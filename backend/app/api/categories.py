from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.models.schemas import Category, CategoryCreate, CategoryUpdate, TransactionKind, User
from app.api.auth import get_current_user
from app.database.postgres_db import get_db as get_session
from app.database.db_service import get_db_service
from app.services.category_service import list_categories

router = APIRouter(prefix="/categories", tags=["categories"])

DUPLICATE_CATEGORY_DETAIL = "A category with this name and type already exists"


@router.get("", response_model=List[Category])
async def get_categories(
    type: Optional[TransactionKind] = None,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    categories = list_categories(db, current_user.id, type.value if type else None)
    return [Category(**cat) for cat in categories]


@router.post("", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: CategoryCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    category_doc = {
        **category.model_dump(mode="json"),
        "user_id": current_user.id
    }

    try:
        created_category = db.insert("categories", category_doc)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_CATEGORY_DETAIL)

    return Category(**created_category)


@router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    category_update: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_category = db.find_one("categories", {"id": category_id, "user_id": current_user.id})
    if not existing_category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )

    changes = category_update.model_dump(mode="json")
    if changes["type"] != existing_category["type"] and db.count("transactions", {"category_id": category_id}):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot change the type of a category that has transactions"
        )

    try:
        db.update("categories", {"id": category_id}, changes)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_CATEGORY_DETAIL)

    updated_category = db.find_one("categories", {"id": category_id})
    return Category(**updated_category)


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_category = db.find_one("categories", {"id": category_id, "user_id": current_user.id})
    if not existing_category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )

    if db.count("transactions", {"category_id": category_id}):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category still has transactions"
        )

    db.delete("categories", {"id": category_id})
    session.commit()

    return {"message": "Category deleted successfully"}
