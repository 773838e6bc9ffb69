"""
Rebalance Coordinator

Public operations behind the account/allocation endpoints. Each mutating
operation validates its input, then runs as one transaction:

- validation, ownership and policy checks happen before any write
- the rebalancer redistributes buckets and reprices accounts
- the daily budget is recomputed when a Kebutuhan bucket was touched
- commit on success, rollback on any error

The daily-budget recompute runs in its own SAVEPOINT (see daily_budget), so a
degraded budget figure never rolls back the allocation change.
"""
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from src.db.core import (
    AccountDB,
    AccountAllocationDB,
    MonthlyExpenseDB,
    AllocationType,
    IncomeSource,
    InvalidInputError
)
from src.crud import crud_account, crud_allocation, crud_budget
from src.crud.crud_user import require_user
from src.models.account import (
    AllocationResponse,
    AccountSummary,
    NewAccount,
    AddAccountResponse,
    OnboardResponse,
    ChangeSummary,
    UpdateAllocationResponse,
    AllocationBalanceChange,
    AccountBalanceChange,
    UpdateAccountBalanceResponse
)
from src.models.budget import (
    ExpenseResponse,
    IncomeResponse,
    IncomeRecord,
    MonthlyExpenseCreate,
    TodayBudgetSummary
)
from src.services import balance_calculator, daily_budget, rebalancer
from src.logging_config import get_logger

logger = get_logger(__name__)


ZERO = Decimal("0.00")


@contextmanager
def transaction(db: Session, operation: str):
    """Commit when the block finishes, roll everything back if it raises"""
    try:
        yield
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"{operation} rolled back: {type(e).__name__}: {e}")
        raise


# ===== VALIDATION =====

def parse_allocation_type(value) -> AllocationType:
    raw = getattr(value, "value", value)
    try:
        return AllocationType(raw)
    except ValueError:
        raise InvalidInputError(f"Invalid allocation type '{raw}'. Use Kebutuhan, Tabungan or Darurat.")


def parse_income_source(value) -> IncomeSource:
    if value is None:
        return IncomeSource.LAINNYA
    raw = getattr(value, "value", value)
    try:
        return IncomeSource(raw)
    except ValueError:
        raise InvalidInputError(f"Invalid income source '{raw}'")


def parse_balance(value, field: str = "balance_per_type") -> Decimal:
    try:
        balance = Decimal(str(value))
    except Exception:
        raise InvalidInputError(f"{field} must be a number")
    if not balance.is_finite() or balance < 0:
        raise InvalidInputError(f"{field} must be zero or greater")
    return round(balance, 2)


# ===== RESPONSE HELPERS =====

def allocation_response(allocation: AccountAllocationDB) -> AllocationResponse:
    return AllocationResponse(
        id=allocation.id,
        account_id=allocation.account_id,
        type=allocation.type.value,
        balance_per_type=allocation.balance_per_type,
        allocation_date=allocation.allocation_date
    )


def account_summary(account: AccountDB) -> AccountSummary:
    return AccountSummary(
        id=account.id,
        bank_id=account.bank_id,
        bank_code=account.bank.code_name if account.bank else None,
        initial_balance=account.initial_balance,
        current_balance=account.current_balance,
        created_at=account.created_at,
        allocations=[allocation_response(a) for a in account.allocations]
    )


def accounts_snapshot(db: Session, user_id: int) -> List[AccountSummary]:
    """Every account of the user with its buckets, oldest first"""
    accounts = crud_account.read_db_accounts_ordered(db, user_id)
    rebalancer.refresh_allocations(db, accounts)
    return [account_summary(account) for account in accounts]


def bucket_totals(db: Session, user_id: int) -> Dict[str, Decimal]:
    """Balance held in each bucket across all accounts"""
    require_user(db, user_id)
    return {
        allocation_type.value: crud_allocation.sum_allocations_by_type(db, user_id, allocation_type)
        for allocation_type in AllocationType
    }


# ===== OPERATIONS =====

def add_account(db: Session, user_id: int, bank_id: int, requested_type, requested_balance) -> AddAccountResponse:
    """Attach a new bank account and redistribute buckets for the new account count"""

    require_user(db, user_id)
    crud_account.require_bank(db, bank_id)
    allocation_type = parse_allocation_type(requested_type)
    balance = parse_balance(requested_balance)

    previous_count = crud_account.get_accounts_count(db, user_id)
    rebalancer.check_transition(previous_count, allocation_type)

    with transaction(db, f"add_account for user {user_id}"):
        new_account = crud_account.create_db_account(db, user_id, bank_id)
        result = rebalancer.on_account_count_change(
            db, user_id, previous_count, new_account, allocation_type, balance
        )

        budget_tracking = None
        kebutuhan = crud_allocation.get_allocation_by_type(db, new_account.id, AllocationType.KEBUTUHAN)
        # The first account's Kebutuhan is created at 0; there is nothing to budget yet
        if previous_count > 0 and allocation_type == AllocationType.KEBUTUHAN and kebutuhan:
            budget_tracking = daily_budget.recalculate(db, user_id, new_account.id, kebutuhan.balance_per_type)

        requested = crud_allocation.get_allocation_by_type(db, new_account.id, allocation_type)
        response = AddAccountResponse(
            message=result['message'],
            new_account=NewAccount(
                id=new_account.id,
                bank_id=new_account.bank_id,
                current_balance=new_account.current_balance,
                type=allocation_type.value,
                balance_per_type=requested.balance_per_type if requested else ZERO
            ),
            total_accounts=previous_count + 1,
            allocations_created=[allocation_response(a) for a in result['allocations_created']],
            allocations_deleted=result['allocations_deleted'],
            accounts_summary=accounts_snapshot(db, user_id),
            budget_tracking=budget_tracking
        )

    return response


def onboard_account(db: Session, user_id: int, bank_id: int) -> OnboardResponse:
    """Onboarding form: add an account and re-lay all three buckets at 0 over the user's accounts"""

    require_user(db, user_id)
    crud_account.require_bank(db, bank_id)

    with transaction(db, f"onboard_account for user {user_id}"):
        new_account = crud_account.create_db_account(db, user_id, bank_id)
        rebalancer.layout_onboarding_allocations(db, user_id)

        summaries = accounts_snapshot(db, user_id)
        new_summary = next(s for s in summaries if s.id == new_account.id)
        response = OnboardResponse(
            message=rebalancer.advisory_message(len(summaries)),
            account_count=len(summaries),
            new_account=new_summary,
            accounts_summary=summaries
        )

    return response


def _is_no_op(target: AccountAllocationDB, new_type: Optional[AllocationType],
              new_balance: Optional[Decimal]) -> bool:
    type_same = new_type is None or new_type == target.type
    balance_same = new_balance is None or new_balance == target.balance_per_type
    return type_same and balance_same


def update_allocation(db: Session, user_id: int, allocation_id: int,
                      new_type=None, new_balance=None) -> UpdateAllocationResponse:
    """
    Reassign a bucket's type and/or overwrite its balance.

    A type change swaps with the allocation already holding that type (or
    relabels) and reprices every account as a plain sum. A balance-only change
    reprices every account with the count-sensitive rule.
    """
    if new_type is None and new_balance is None:
        raise InvalidInputError("Provide new_type, new_balance, or both")

    require_user(db, user_id)
    allocation_type = parse_allocation_type(new_type) if new_type is not None else None
    balance = parse_balance(new_balance, "new_balance") if new_balance is not None else None
    target = crud_allocation.require_owned_allocation(db, allocation_id, user_id)

    if _is_no_op(target, allocation_type, balance):
        logger.info(f"User {user_id}: update of allocation {allocation_id} is a no-op")
        return UpdateAllocationResponse(
            no_op=True,
            change_summary=None,
            updated_accounts=accounts_snapshot(db, user_id),
            budget_tracking=None
        )

    old_type, old_balance, old_account_id = target.type, target.balance_per_type, target.account_id
    type_changed = allocation_type is not None and allocation_type != old_type

    with transaction(db, f"update_allocation {allocation_id} for user {user_id}"):
        counterpart = None
        if type_changed:
            swap = rebalancer.on_allocation_type_swap(db, user_id, target, allocation_type)
            counterpart = swap['counterpart']
            # the swap left the target holding the counterpart's balance
            if balance is not None:
                crud_allocation.update_db_allocation(db, target, balance=balance)
                rebalancer.recompute_plain_sum(db, user_id)
        else:
            rebalancer.on_allocation_balance_change(db, user_id, target, balance)
            rebalancer.recompute_count_sensitive(db, user_id)

        budget_tracking = None
        touched = [a for a in (target, counterpart) if a is not None]
        kebutuhan_touched = old_type == AllocationType.KEBUTUHAN or any(
            a.type == AllocationType.KEBUTUHAN for a in touched
        )
        if kebutuhan_touched:
            holder = next((a for a in touched if a.type == AllocationType.KEBUTUHAN), None)
            if holder:
                budget_tracking = daily_budget.recalculate(db, user_id, holder.account_id, holder.balance_per_type)
            else:
                # Kebutuhan relabelled away with nothing to take its place
                budget_tracking = daily_budget.recalculate(db, user_id, old_account_id, ZERO)

        response = UpdateAllocationResponse(
            no_op=False,
            change_summary=ChangeSummary(
                allocation_id=target.id,
                old_type=old_type.value,
                new_type=target.type.value,
                old_balance=old_balance,
                new_balance=target.balance_per_type,
                old_account_id=old_account_id,
                new_account_id=target.account_id,
                swapped=counterpart is not None,
                counterpart_id=counterpart.id if counterpart else None
            ),
            updated_accounts=accounts_snapshot(db, user_id),
            budget_tracking=budget_tracking
        )

    return response


def update_account_balance(db: Session, user_id: int, account_id: int,
                           allocation_type, balance_per_type) -> UpdateAccountBalanceResponse:
    """Set one bucket's balance on an account (creating the bucket if missing) and reprice the account"""

    require_user(db, user_id)
    allocation_type = parse_allocation_type(allocation_type)
    balance = parse_balance(balance_per_type)
    account = crud_account.require_owned_account(db, account_id, user_id)

    old_current_balance = account.current_balance or ZERO

    with transaction(db, f"update_account_balance {account_id} for user {user_id}"):
        allocation = crud_allocation.get_allocation_by_type(db, account.id, allocation_type)
        if allocation:
            old_balance = allocation.balance_per_type
        else:
            allocation = crud_allocation.create_db_allocation(db, account.id, allocation_type, ZERO)
            old_balance = ZERO

        account = rebalancer.on_allocation_balance_change(db, user_id, allocation, balance)

        budget_tracking = None
        if allocation_type == AllocationType.KEBUTUHAN:
            budget_tracking = daily_budget.recalculate(db, user_id, account.id, balance)

        accounts = crud_account.read_db_accounts_ordered(db, user_id)
        response = UpdateAccountBalanceResponse(
            account_id=account.id,
            type=allocation_type.value,
            total_banks=len(accounts),
            allocation_update=AllocationBalanceChange(
                old_balance_per_type=old_balance,
                new_balance_per_type=balance,
                balance_change=balance - old_balance
            ),
            account_balance=AccountBalanceChange(
                old_current_balance=old_current_balance,
                new_current_balance=account.current_balance,
                current_balance_change=account.current_balance - old_current_balance
            ),
            calculation_method=balance_calculator.calculation_method(account, accounts),
            budget_tracking=budget_tracking
        )

    return response


def record_expense(db: Session, user_id: int, allocation_id: int, amount,
                   expense_date: Optional[date] = None, note: Optional[str] = None) -> ExpenseResponse:
    """
    Spend from a bucket. The bucket shrinks by the amount and its account is
    repriced; a Kebutuhan expense dated today also comes off today's budget row.
    """
    require_user(db, user_id)
    amount = parse_balance(amount, "amount")
    if amount <= 0:
        raise InvalidInputError("amount must be greater than zero")

    allocation = crud_allocation.require_owned_allocation(db, allocation_id, user_id)
    old_allocation_balance = allocation.balance_per_type
    if old_allocation_balance < amount:
        raise InvalidInputError(
            f"Insufficient balance in {allocation.type.value}: available {old_allocation_balance}, requested {amount}"
        )

    today = daily_budget.local_today()
    expense_date = expense_date or today

    with transaction(db, f"record_expense on allocation {allocation_id} for user {user_id}"):
        expense = crud_budget.create_db_expense(
            db, user_id, allocation.account_id, allocation.type, amount, expense_date, note
        )
        account = rebalancer.on_allocation_balance_change(
            db, user_id, allocation, old_allocation_balance - amount
        )

        budget_update = None
        if allocation.type == AllocationType.KEBUTUHAN and expense_date == today:
            budget_update = daily_budget.apply_expense(db, user_id, account.id, amount, today)

        response = ExpenseResponse(
            expense_id=expense.id,
            account_id=account.id,
            allocation_type=allocation.type.value,
            amount=amount,
            expense_date=expense_date,
            old_allocation_balance=old_allocation_balance,
            new_allocation_balance=allocation.balance_per_type,
            new_current_balance=account.current_balance,
            budget_update=budget_update
        )

    logger.info(f"User {user_id}: expense {expense.id} of {amount} from {allocation.type.value}")
    return response


def record_income(db: Session, user_id: int, allocation_id: int, amount,
                  received_date: Optional[date] = None, income_source=None,
                  note: Optional[str] = None) -> IncomeResponse:
    """
    Add money to a bucket. The bucket grows by the amount and its account is
    repriced; a Kebutuhan income also recomputes today's daily budget.
    """
    require_user(db, user_id)
    amount = parse_balance(amount, "amount")
    if amount <= 0:
        raise InvalidInputError("amount must be greater than zero")
    source = parse_income_source(income_source)

    allocation = crud_allocation.require_owned_allocation(db, allocation_id, user_id)
    old_allocation_balance = allocation.balance_per_type
    received_date = received_date or daily_budget.local_today()

    with transaction(db, f"record_income on allocation {allocation_id} for user {user_id}"):
        income = crud_budget.create_db_income(
            db, user_id, allocation.account_id, allocation.type, amount, received_date, source, note
        )
        account = rebalancer.on_allocation_balance_change(
            db, user_id, allocation, old_allocation_balance + amount
        )

        budget_tracking = None
        if allocation.type == AllocationType.KEBUTUHAN:
            budget_tracking = daily_budget.recalculate(db, user_id, account.id, allocation.balance_per_type)

        response = IncomeResponse(
            income_id=income.id,
            account_id=account.id,
            allocation_type=allocation.type.value,
            amount=amount,
            income_source=source.value,
            received_date=received_date,
            old_allocation_balance=old_allocation_balance,
            new_allocation_balance=allocation.balance_per_type,
            new_current_balance=account.current_balance,
            budget_tracking=budget_tracking
        )

    logger.info(f"User {user_id}: income {income.id} of {amount} into {allocation.type.value}")
    return response


def list_incomes(db: Session, user_id: int) -> List[IncomeRecord]:
    require_user(db, user_id)
    return [
        IncomeRecord(
            id=income.id,
            account_id=income.account_id,
            allocation_type=income.allocation_type.value,
            amount=income.amount,
            income_source=income.income_source.value,
            note=income.note,
            received_date=income.received_date
        )
        for income in crud_budget.read_db_incomes(db, user_id)
    ]


def budget_today(db: Session, user_id: int, today: Optional[date] = None) -> TodayBudgetSummary:
    """Today's allowance summary; missing rows for today are created on the way"""

    require_user(db, user_id)
    with transaction(db, f"budget_today for user {user_id}"):
        summary = daily_budget.today_summary(db, user_id, today)
    return summary


def add_monthly_expense(db: Session, user_id: int, expense_data: MonthlyExpenseCreate) -> MonthlyExpenseDB:
    """Register a fixed monthly expense; defaults to the current month in the app timezone"""

    require_user(db, user_id)
    today = daily_budget.local_today()
    return crud_budget.create_db_monthly_expense(
        db,
        user_id,
        expense_data,
        month=expense_data.month or today.month,
        year=expense_data.year or today.year
    )
