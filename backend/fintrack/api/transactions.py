from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional, Dict
from sqlalchemy.orm import Session
from fintrack.models.schemas import (
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    TransactionBulkUpdate,
    TransactionBulkDelete,
    DuplicateGroup,
)
from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


def duplicate_key(txn: Dict) -> str:
    """Same date, same description ignoring case, same amount to the cent."""
    return f"{txn['date']}-{txn['description'].strip().lower()}-{txn['amount']:.2f}"


def find_duplicate_groups(transactions: List[Dict]) -> List[DuplicateGroup]:
    groups: Dict[str, List[str]] = {}
    for txn in transactions:
        groups.setdefault(duplicate_key(txn), []).append(txn["id"])
    return [
        DuplicateGroup(key=key, transaction_ids=ids)
        for key, ids in groups.items()
        if len(ids) > 1
    ]


def _require_account(db, account_id: str):
    if not db.find_one("accounts", {"id": account_id}):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )


@router.get("", response_model=List[Transaction])
async def get_transactions(
    account_id: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches description or category, case-insensitive"),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    query = {}
    if account_id:
        query["account_id"] = account_id
    if category:
        query["category"] = category

    transactions = db.find("transactions", query)

    if search:
        needle = search.strip().lower()
        transactions = [
            txn for txn in transactions
            if needle in txn["description"].lower() or needle in (txn.get("category") or "").lower()
        ]

    return [Transaction(**txn) for txn in transactions]

@router.get("/duplicates", response_model=List[DuplicateGroup])
async def get_duplicate_transactions(
    account_id: Optional[str] = Query(None),
    session: Session = Depends(get_session)
):
    """Report groups of likely duplicates. Nothing is deleted."""
    db = get_db_service(session)
    query = {"account_id": account_id} if account_id else None
    return find_duplicate_groups(db.find("transactions", query))

@router.post("", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    transaction: TransactionCreate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    _require_account(db, transaction.account_id)

    transaction_doc = transaction.model_dump()
    transaction_doc["description"] = transaction_doc["description"].strip()
    if not transaction_doc["description"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Description cannot be empty"
        )
    transaction_doc["category"] = transaction_doc["category"].strip() or "Uncategorized"
    transaction_doc["is_debit"] = transaction_doc["amount"] < 0
    transaction_doc["source"] = "manual"

    created_transaction = db.insert("transactions", transaction_doc)
    session.commit()
    return Transaction(**created_transaction)

@router.post("/bulk-update")
async def bulk_update_transactions(
    payload: TransactionBulkUpdate,
    session: Session = Depends(get_session)
):
    """Move many transactions to one category."""
    category = payload.category.strip()
    if not category:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category cannot be empty"
        )

    db = get_db_service(session)
    updated = db.bulk_update("transactions", payload.ids, {"category": category})
    session.commit()
    return {"updated": updated}

@router.post("/bulk-delete")
async def bulk_delete_transactions(
    payload: TransactionBulkDelete,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    deleted = db.bulk_delete("transactions", payload.ids)
    session.commit()
    return {"deleted": deleted}

@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    transaction = db.find_one("transactions", {"id": transaction_id})

    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    return Transaction(**transaction)

@router.put("/{transaction_id}", response_model=Transaction)
async def update_transaction(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_transaction = db.find_one("transactions", {"id": transaction_id})
    if not existing_transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    update_data = transaction_update.model_dump(exclude_unset=True, exclude_none=True)

    if "account_id" in update_data:
        _require_account(db, update_data["account_id"])

    if "description" in update_data:
        update_data["description"] = update_data["description"].strip()
        if not update_data["description"]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Description cannot be empty"
            )

    if "category" in update_data:
        update_data["category"] = update_data["category"].strip() or "Uncategorized"

    if "amount" in update_data:
        update_data["is_debit"] = update_data["amount"] < 0

    if update_data:
        db.update("transactions", {"id": transaction_id}, update_data)
        session.commit()

    return Transaction(**db.find_one("transactions", {"id": transaction_id}))

@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_transaction = db.find_one("transactions", {"id": transaction_id})
    if not existing_transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found"
        )

    db.delete("transactions", {"id": transaction_id})
    session.commit()

    return {"message": "Transaction deleted successfully"}
