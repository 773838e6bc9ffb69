from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from src.services import coordinator
from src.models import budget as budget_models
from src.db.core import get_db
from src.routers.common import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/incomes",
    tags=["incomes"],
)

@router.get("/", response_model=List[budget_models.IncomeRecord])
def read_incomes(db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)):
    """
    The current user's incomes, newest first.
    """
    try:
        return coordinator.list_incomes(db, user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

@router.post("/", response_model=budget_models.IncomeResponse, status_code=status.HTTP_201_CREATED)
def record_income(
    income: budget_models.IncomeCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Add money to one of the current user's buckets.
    """
    try:
        return coordinator.record_income(
            db=db,
            user_id=user_id,
            allocation_id=income.account_allocation_id,
            amount=income.amount,
            received_date=income.received_date,
            income_source=income.income_source,
            note=income.note
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
