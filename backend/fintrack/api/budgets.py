from fastapi import APIRouter, Depends, HTTPException, status
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from fintrack.models.schemas import Budget, BudgetCreate
from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/budgets", tags=["budgets"])


def _budget_doc(budget: BudgetCreate) -> Dict[str, Any]:
    doc = budget.model_dump(mode="json")
    doc["name"] = doc["name"].strip()
    if not doc["name"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Budget name cannot be empty"
        )
    if doc["total_budget_amount"] is None:
        doc["total_budget_amount"] = sum(limit["limit"] for limit in doc["category_limits"])
    return doc


def _clear_other_defaults(db, budget_id: str):
    """Only one budget may be the default."""
    for other in db.find("budgets", {"is_default": True}):
        if other["id"] != budget_id:
            db.update("budgets", other["id"], {"is_default": False})


@router.get("", response_model=List[Budget])
async def get_budgets(
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    return [Budget(**budget) for budget in db.find("budgets")]

@router.get("/{budget_id}", response_model=Budget)
async def get_budget(
    budget_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    budget = db.find_one("budgets", {"id": budget_id})

    if not budget:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )

    return Budget(**budget)

@router.post("", response_model=Budget, status_code=status.HTTP_201_CREATED)
async def create_budget(
    budget: BudgetCreate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    created = db.insert("budgets", _budget_doc(budget))
    if created["is_default"]:
        _clear_other_defaults(db, created["id"])

    session.commit()
    logger.info(f"Created budget '{created['name']}' ({len(created['category_limits'])} category limits)")
    return Budget(**created)

@router.put("/{budget_id}", response_model=Budget)
async def update_budget(
    budget_id: str,
    budget_update: BudgetCreate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing = db.find_one("budgets", {"id": budget_id})
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )

    doc = _budget_doc(budget_update)
    db.update("budgets", {"id": budget_id}, doc)
    if doc["is_default"]:
        _clear_other_defaults(db, budget_id)

    session.commit()
    return Budget(**db.find_one("budgets", {"id": budget_id}))

@router.delete("/{budget_id}")
async def delete_budget(
    budget_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing = db.find_one("budgets", {"id": budget_id})
    if not existing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )

    db.delete("budgets", {"id": budget_id})
    session.commit()
    return {"message": "Budget deleted successfully"}
