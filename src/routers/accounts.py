from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from src.services import coordinator
from src.models import account as account_models
from src.db.core import get_db
from src.routers.common import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)

@router.get("/", response_model=List[account_models.AccountSummary])
def read_accounts(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve all accounts of the current user with their buckets, oldest first.
    """
    return coordinator.accounts_snapshot(db=db, user_id=user_id)

@router.post("/", response_model=account_models.AddAccountResponse, status_code=status.HTTP_201_CREATED)
def add_account(
    account: account_models.AccountCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Attach a new bank account holding the requested bucket.
    Buckets on existing accounts are redistributed for the new account count.
    """
    try:
        return coordinator.add_account(
            db=db,
            user_id=user_id,
            bank_id=account.bank_id,
            requested_type=account.type,
            requested_balance=account.balance_per_type
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

@router.post("/onboard", response_model=account_models.OnboardResponse, status_code=status.HTTP_201_CREATED)
def onboard_account(
    account: account_models.AccountOnboard,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Onboarding form: add an account and lay out empty buckets across all accounts.
    """
    try:
        return coordinator.onboard_account(db=db, user_id=user_id, bank_id=account.bank_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

@router.put("/balance", response_model=account_models.UpdateAccountBalanceResponse)
def update_account_balance(
    update: account_models.AccountBalanceUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Set one bucket's balance on an account and recompute the account balance.
    """
    try:
        return coordinator.update_account_balance(
            db=db,
            user_id=user_id,
            account_id=update.account_id,
            allocation_type=update.type,
            balance_per_type=update.balance_per_type
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
