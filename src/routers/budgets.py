from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.services import coordinator
from src.models import budget as budget_models
from src.db.core import get_db
from src.routers.common import get_current_user_id, to_http_exception, DOMAIN_ERRORS

router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)

monthly_router = APIRouter(
    prefix="/monthly-expenses",
    tags=["budgets"],
)

@router.get("/today", response_model=budget_models.TodayBudgetSummary)
def read_today_budget(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Today's daily allowance, accrued saving and spending across the current user's accounts.
    """
    try:
        return coordinator.budget_today(db=db, user_id=user_id)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)

@monthly_router.post("/", response_model=budget_models.MonthlyExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_monthly_expense(
    expense: budget_models.MonthlyExpenseCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Register a fixed monthly expense. When enabled, it is taken off the daily budget base.
    """
    try:
        return coordinator.add_monthly_expense(db=db, user_id=user_id, expense_data=expense)
    except DOMAIN_ERRORS as e:
        raise to_http_exception(e)
