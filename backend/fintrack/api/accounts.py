from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from sqlalchemy.orm import Session
from fintrack.models.schemas import Account, AccountCreate, AccountUpdate
from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


def signed_balance(account_type: str, balance: float) -> float:
    """Credit accounts store the amount owed as a negative balance."""
    return -abs(balance) if account_type == "credit" else abs(balance)


@router.post("", response_model=Account, status_code=status.HTTP_201_CREATED)
async def create_account(
    account: AccountCreate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    account_doc = account.model_dump(mode="json")
    account_doc["balance"] = signed_balance(account_doc["account_type"], account_doc["balance"])

    created_account = db.insert("accounts", account_doc)
    session.commit()
    logger.info(f"Created {account_doc['account_type']} account '{account_doc['name']}'")
    return Account(**created_account)

@router.get("", response_model=List[Account])
async def get_accounts(
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    return [Account(**acc) for acc in db.find("accounts")]

@router.get("/{account_id}", response_model=Account)
async def get_account(
    account_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)
    account = db.find_one("accounts", {"id": account_id})

    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )

    return Account(**account)

@router.put("/{account_id}", response_model=Account)
async def update_account(
    account_id: str,
    account_update: AccountUpdate,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_account = db.find_one("accounts", {"id": account_id})
    if not existing_account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )

    update_data = account_update.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in update_data:
        update_data["name"] = update_data["name"].strip()
        if not update_data["name"]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Account name cannot be empty"
            )

    if "currency" in update_data:
        update_data["currency"] = update_data["currency"].strip().upper()
        if len(update_data["currency"]) != 3:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Currency must be a 3-letter code"
            )

    if "balance" in update_data:
        update_data["balance"] = signed_balance(existing_account["account_type"], update_data["balance"])

    if update_data:
        db.update("accounts", {"id": account_id}, update_data)
        session.commit()

    updated_account = db.find_one("accounts", {"id": account_id})
    return Account(**updated_account)

@router.delete("/{account_id}")
async def delete_account(
    account_id: str,
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    existing_account = db.find_one("accounts", {"id": account_id})
    if not existing_account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )

    # Transactions keep their account_id; the reference is not enforced
    db.delete("accounts", {"id": account_id})
    session.commit()
    return {"message": "Account deleted successfully"}
