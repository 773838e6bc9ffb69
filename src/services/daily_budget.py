"""
Daily Budget Recalculator

Turns a Kebutuhan balance into a daily spending allowance and rolls unspent
allowance forward as daily saving.

    daily_budget = round_half_up(kebutuhan_balance / days_in_month)

A same-day recompute keeps the accrued daily_saving and only resets the
allowance. The first recompute of a day carries yesterday's leftover
(initial allowance minus yesterday's expenses, floored at 0) into daily_saving.

Recompute failures never bubble up: they are logged and reported as a zeroed
snapshot with `error` set, and the caller's mutation stands.
"""
import calendar
import os
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.orm import Session

from src.db.core import AllocationType, BudgetDB, local_today
from src.crud import crud_budget
from src.crud.crud_account import read_db_accounts_ordered
from src.crud.crud_allocation import get_allocation_by_type
from src.models.budget import BudgetSnapshot, TodayBudgetSummary
from src.logging_config import get_logger

logger = get_logger(__name__)


SUBTRACT_MONTHLY_EXPENSES = os.getenv("DAILY_BUDGET_SUBTRACT_MONTHLY_EXPENSES", "false").lower() == "true"

ZERO = Decimal("0.00")


def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def compute_daily_budget(base: Decimal, days: int) -> Decimal:
    """Whole currency units, half-up"""
    if days <= 0:
        raise ValueError("days_in_month must be positive")
    return (Decimal(base) / Decimal(days)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def carry_forward_saving(db: Session, user_id: int, account_id: int, today: date) -> Decimal:
    """Yesterday's daily_saving plus whatever of yesterday's allowance went unspent"""

    yesterday = today - timedelta(days=1)
    previous = crud_budget.read_db_budget_for_day(db, user_id, account_id, yesterday)
    if not previous:
        return ZERO

    allowance = previous.initial_daily_budget
    if allowance is None:
        allowance = previous.daily_budget or ZERO

    spent = crud_budget.sum_expenses_for_day(db, user_id, yesterday, account_id=account_id)
    leftover = max(ZERO, allowance - spent)
    return (previous.daily_saving or ZERO) + leftover


def _budget_base(db: Session, user_id: int, kebutuhan_balance: Decimal, today: date) -> Decimal:
    base = Decimal(kebutuhan_balance or 0)
    if SUBTRACT_MONTHLY_EXPENSES:
        monthly_total = crud_budget.sum_monthly_expenses(db, user_id, today.month, today.year)
        base = max(ZERO, base - monthly_total)
    return base


def _snapshot(budget: BudgetDB, kebutuhan_balance: Decimal, days: int, is_new: bool) -> BudgetSnapshot:
    return BudgetSnapshot(
        budget_id=budget.id,
        account_id=budget.account_id,
        budget_date=budget.budget_date,
        daily_budget=budget.daily_budget,
        initial_daily_budget=budget.initial_daily_budget,
        daily_saving=budget.daily_saving,
        kebutuhan_balance=kebutuhan_balance,
        days_in_month=days,
        is_new_record=is_new
    )


def _recalculate(db: Session, user_id: int, account_id: int,
                 kebutuhan_balance: Decimal, today: date) -> BudgetSnapshot:
    days = days_in_month(today)
    daily_budget = compute_daily_budget(_budget_base(db, user_id, kebutuhan_balance, today), days)

    existing = crud_budget.read_db_budget_for_day(db, user_id, account_id, today)
    if existing:
        crud_budget.reset_db_budget_allowance(db, existing, daily_budget)
        return _snapshot(existing, kebutuhan_balance, days, is_new=False)

    daily_saving = carry_forward_saving(db, user_id, account_id, today)
    budget = crud_budget.create_db_budget(db, user_id, account_id, today, daily_budget, daily_saving)
    return _snapshot(budget, kebutuhan_balance, days, is_new=True)


def recalculate(db: Session, user_id: int, account_id: int, kebutuhan_balance: Decimal,
                today: Optional[date] = None) -> BudgetSnapshot:
    """
    Recompute today's budget row for (user, account).

    Runs inside a SAVEPOINT so a failure here is rolled back on its own and
    never undoes the allocation writes that triggered it.
    """
    today = today or local_today()
    try:
        with db.begin_nested():
            snapshot = _recalculate(db, user_id, account_id, kebutuhan_balance, today)
    except Exception as e:
        logger.error(f"Daily budget recompute failed for user {user_id}, account {account_id}: {e}")
        return BudgetSnapshot.degraded(str(e))

    logger.info(
        f"Daily budget for user {user_id}, account {account_id} on {today}: "
        f"{snapshot.daily_budget} (saving {snapshot.daily_saving})"
    )
    return snapshot


def ensure_daily_budgets(db: Session, user_id: int, today: Optional[date] = None) -> List[BudgetSnapshot]:
    """Create today's row for every account holding a positive Kebutuhan balance that lacks one"""

    today = today or local_today()
    snapshots = []
    for account in read_db_accounts_ordered(db, user_id):
        kebutuhan = get_allocation_by_type(db, account.id, AllocationType.KEBUTUHAN)
        if not kebutuhan or kebutuhan.balance_per_type <= 0:
            continue
        if crud_budget.read_db_budget_for_day(db, user_id, account.id, today):
            continue
        snapshots.append(recalculate(db, user_id, account.id, kebutuhan.balance_per_type, today))
    return snapshots


def apply_expense(db: Session, user_id: int, account_id: int, amount: Decimal,
                  today: Optional[date] = None) -> Optional[dict]:
    """Deduct a Kebutuhan expense from today's row. No row today means nothing to deduct."""

    today = today or local_today()
    budget = crud_budget.read_db_budget_for_day(db, user_id, account_id, today)
    if not budget:
        return None
    return crud_budget.deduct_db_budget(db, budget, amount)


def today_summary(db: Session, user_id: int, today: Optional[date] = None) -> TodayBudgetSummary:
    """Totals across today's rows. Over-budget is judged against the initial allowance."""

    today = today or local_today()
    ensure_daily_budgets(db, user_id, today)

    budgets = crud_budget.read_db_budgets_for_day(db, user_id, today)
    current_total = sum((b.daily_budget or ZERO for b in budgets), ZERO)
    initial_total = sum((b.initial_daily_budget or ZERO for b in budgets), ZERO)
    saving_total = sum((b.daily_saving or ZERO for b in budgets), ZERO)
    expenses = crud_budget.sum_expenses_for_day(db, user_id, today)

    is_over_budget = expenses > initial_total
    return TodayBudgetSummary(
        budget_date=today,
        current_daily_budget=current_total,
        initial_daily_budget=initial_total,
        daily_saving=saving_total,
        today_expenses=expenses,
        remaining_budget=max(ZERO, initial_total - expenses),
        is_over_budget=is_over_budget,
        over_budget_amount=expenses - initial_total if is_over_budget else ZERO,
        budget_records_count=len(budgets)
    )
