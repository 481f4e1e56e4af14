from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from sqlalchemy.orm import Session
from fintrack.models.schemas import Category, CategoryCreate, CategoryUpdate
from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
from fintrack.services.categories import (
    CategoryExistsError,
    create_category as create_category_record,
    update_category as update_category_record,
    seed_default_categories,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[Category])
async def get_categories(
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    return [Category(**category) for category in db.find("categories")]

@router.post("", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: CategoryCreate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    try:
        created = create_category_record(db, category.name, category.icon)
    except CategoryExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session.commit()
    return Category(**created)

@router.post("/init-defaults", response_model=List[Category])
async def init_default_categories(
    session: Session = Depends(get_session)
):
    """Create the default categories that do not exist yet."""
    db = get_db_service(session)
    created = seed_default_categories(db)
    session.commit()
    logger.info(f"Seeded {len(created)} default categories")
    return [Category(**category) for category in created]

@router.put("/{category_id}", response_model=Category)
async def update_category(
    category_id: str,
    category_update: CategoryUpdate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing = db.find_one("categories", {"id": category_id})
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )

    try:
        update_category_record(db, existing, name=category_update.name, icon=category_update.icon)
    except CategoryExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session.commit()
    return Category(**db.find_one("categories", {"id": category_id}))

@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing = db.find_one("categories", {"id": category_id})
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )

    # Transactions keep the category name as a plain string
    db.delete("categories", {"id": category_id})
    session.commit()
    return {"message": "Category deleted successfully"}
