from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.services import coordinator
from src.models import budget as budget_models
from src.db.core import get_db
from src.routers.common import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

@router.post("/", response_model=budget_models.ExpenseResponse, status_code=status.HTTP_201_CREATED)
def record_expense(
    expense: budget_models.ExpenseCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Spend from one of the current user's buckets.
    """
    try:
        return coordinator.record_expense(
            db=db,
            user_id=user_id,
            allocation_id=expense.account_allocation_id,
            amount=expense.amount,
            expense_date=expense.expense_date,
            note=expense.note
        )
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
