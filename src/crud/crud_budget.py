from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from src.db.core import BudgetDB, ExpenseDB, IncomeDB, MonthlyExpenseDB, AllocationType, IncomeSource
from src.models.budget import MonthlyExpenseCreate


ZERO = Decimal("0.00")


# ===== DAILY BUDGET ROWS =====

def read_db_budget_for_day(db: Session, user_id: int, account_id: int, budget_date: date) -> Optional[BudgetDB]:
    return db.query(BudgetDB).filter(
        BudgetDB.user_id == user_id,
        BudgetDB.account_id == account_id,
        BudgetDB.budget_date == budget_date
    ).first()


def read_db_budgets_for_day(db: Session, user_id: int, budget_date: date) -> List[BudgetDB]:
    return db.query(BudgetDB).filter(
        BudgetDB.user_id == user_id,
        BudgetDB.budget_date == budget_date
    ).order_by(BudgetDB.account_id).all()


def create_db_budget(db: Session, user_id: int, account_id: int, budget_date: date,
                     daily_budget: Decimal, daily_saving: Decimal = ZERO) -> BudgetDB:
    """A new day's row starts with daily_budget == initial_daily_budget"""

    now = datetime.utcnow()
    db_budget = BudgetDB(
        user_id=user_id,
        account_id=account_id,
        budget_date=budget_date,
        daily_budget=daily_budget,
        initial_daily_budget=daily_budget,
        daily_saving=daily_saving,
        created_at=now,
        updated_at=now
    )
    db.add(db_budget)
    try:
        db.flush()
    except IntegrityError:
        raise ValueError(f"Budget for account {account_id} on {budget_date} already exists")
    return db_budget


def reset_db_budget_allowance(db: Session, budget: BudgetDB, daily_budget: Decimal) -> BudgetDB:
    """Same-day recompute: new allowance, accrued daily_saving untouched"""

    budget.daily_budget = daily_budget
    budget.initial_daily_budget = daily_budget
    budget.updated_at = datetime.utcnow()
    db.flush()
    return budget


def deduct_db_budget(db: Session, budget: BudgetDB, amount: Decimal) -> dict:
    """Spend from daily_budget first, overflow from daily_saving; neither goes below zero"""

    old_daily_budget = budget.daily_budget or ZERO
    old_daily_saving = budget.daily_saving or ZERO

    if old_daily_budget >= amount:
        new_daily_budget = old_daily_budget - amount
        new_daily_saving = old_daily_saving
    else:
        overflow = amount - old_daily_budget
        new_daily_budget = ZERO
        new_daily_saving = max(ZERO, old_daily_saving - overflow)

    budget.daily_budget = new_daily_budget
    budget.daily_saving = new_daily_saving
    budget.updated_at = datetime.utcnow()
    db.flush()

    return {
        'budget_id': budget.id,
        'old_daily_budget': old_daily_budget,
        'new_daily_budget': new_daily_budget,
        'old_daily_saving': old_daily_saving,
        'new_daily_saving': new_daily_saving,
        'is_over_budget': amount > old_daily_budget,
    }


# ===== EXPENSES =====

def create_db_expense(db: Session, user_id: int, account_id: int, allocation_type: AllocationType,
                      amount: Decimal, expense_date: date, note: Optional[str] = None) -> ExpenseDB:
    db_expense = ExpenseDB(
        user_id=user_id,
        account_id=account_id,
        allocation_type=allocation_type,
        amount=amount,
        note=note,
        expense_date=expense_date,
        created_at=datetime.utcnow()
    )
    db.add(db_expense)
    db.flush()
    return db_expense


def sum_expenses_for_day(db: Session, user_id: int, expense_date: date,
                         account_id: Optional[int] = None) -> Decimal:
    query = db.query(func.coalesce(func.sum(ExpenseDB.amount), 0)).filter(
        ExpenseDB.user_id == user_id,
        ExpenseDB.expense_date == expense_date
    )
    if account_id is not None:
        query = query.filter(ExpenseDB.account_id == account_id)

    result = query.scalar()
    return Decimal(str(result)) if result else ZERO


# ===== INCOMES =====

def create_db_income(db: Session, user_id: int, account_id: int, allocation_type: AllocationType,
                     amount: Decimal, received_date: date, income_source: IncomeSource = IncomeSource.LAINNYA,
                     note: Optional[str] = None) -> IncomeDB:
    db_income = IncomeDB(
        user_id=user_id,
        account_id=account_id,
        allocation_type=allocation_type,
        amount=amount,
        income_source=income_source,
        note=note,
        received_date=received_date,
        created_at=datetime.utcnow()
    )
    db.add(db_income)
    db.flush()
    return db_income


def read_db_incomes(db: Session, user_id: int, account_id: Optional[int] = None) -> List[IncomeDB]:
    """Newest first"""
    query = db.query(IncomeDB).filter(IncomeDB.user_id == user_id)
    if account_id is not None:
        query = query.filter(IncomeDB.account_id == account_id)
    return query.order_by(IncomeDB.received_date.desc(), IncomeDB.id.desc()).all()


# ===== MONTHLY EXPENSES =====

def create_db_monthly_expense(db: Session, user_id: int, expense_data: MonthlyExpenseCreate,
                              month: int, year: int) -> MonthlyExpenseDB:
    existing = db.query(MonthlyExpenseDB).filter(
        MonthlyExpenseDB.user_id == user_id,
        MonthlyExpenseDB.name == expense_data.name,
        MonthlyExpenseDB.month == month,
        MonthlyExpenseDB.year == year
    ).first()
    if existing:
        raise ValueError(f"Monthly expense '{expense_data.name}' already exists for {year}-{month:02d}")

    db_monthly_expense = MonthlyExpenseDB(
        user_id=user_id,
        name=expense_data.name,
        total_amount=expense_data.total_amount,
        month=month,
        year=year,
        is_active=True,
        created_at=datetime.utcnow()
    )

    try:
        db.add(db_monthly_expense)
        db.commit()
        db.refresh(db_monthly_expense)
        return db_monthly_expense
    except IntegrityError:
        db.rollback()
        raise ValueError("Monthly expense creation failed due to database constraint")


def sum_monthly_expenses(db: Session, user_id: int, month: int, year: int) -> Decimal:
    result = db.query(func.coalesce(func.sum(MonthlyExpenseDB.total_amount), 0)).filter(
        MonthlyExpenseDB.user_id == user_id,
        MonthlyExpenseDB.month == month,
        MonthlyExpenseDB.year == year,
        MonthlyExpenseDB.is_active.is_(True)
    ).scalar()
    return Decimal(str(result)) if result else ZERO
