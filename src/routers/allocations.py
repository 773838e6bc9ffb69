from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Dict, List
from decimal import Decimal

from src.crud import crud_allocation
from src.services import coordinator
from src.models import account as account_models
from src.db.core import get_db
from src.routers.common import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/allocations",
    tags=["allocations"],
)

@router.get("/", response_model=List[account_models.AllocationResponse])
def read_allocations(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve every bucket of the current user, grouped by account.
    """
    allocations = crud_allocation.read_db_allocations_for_user(db=db, user_id=user_id)
    return [coordinator.allocation_response(a) for a in allocations]

@router.get("/totals", response_model=Dict[str, Decimal])
def read_bucket_totals(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Total balance per bucket type across all accounts.
    """
    try:
        return coordinator.bucket_totals(db=db, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

@router.put("/", response_model=account_models.UpdateAllocationResponse)
def update_allocation(
    update: account_models.AllocationUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Reassign a bucket to another type and/or overwrite its balance.
    """
    try:
        return coordinator.update_allocation(
            db=db,
            user_id=user_id,
            allocation_id=update.account_allocation_id,
            new_type=update.new_type,
            new_balance=update.new_balance
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
