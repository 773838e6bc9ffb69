from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date
from decimal import Decimal
from enum import Enum

# ===== DAILY BUDGET PYDANTIC MODELS =====

class BudgetSnapshot(BaseModel):
    """Result of a daily-budget recompute. A zeroed snapshot with `error` set means tracking is degraded."""
    budget_id: Optional[int] = None
    account_id: Optional[int] = None
    budget_date: Optional[date] = None
    daily_budget: Decimal = Decimal("0")
    initial_daily_budget: Decimal = Decimal("0")
    daily_saving: Decimal = Decimal("0")
    kebutuhan_balance: Decimal = Decimal("0")
    days_in_month: int = 0
    is_new_record: bool = False
    error: Optional[str] = None

    @classmethod
    def degraded(cls, message: str) -> "BudgetSnapshot":
        return cls(error=message)


class TodayBudgetSummary(BaseModel):
    budget_date: date
    current_daily_budget: Decimal
    initial_daily_budget: Decimal
    daily_saving: Decimal
    today_expenses: Decimal
    remaining_budget: Decimal
    is_over_budget: bool
    over_budget_amount: Decimal
    budget_records_count: int


class ExpenseCreate(BaseModel):
    account_allocation_id: int
    amount: Decimal = Field(..., gt=0, description="Expense amount")
    expense_date: Optional[date] = None
    note: Optional[str] = Field(None, max_length=255)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class ExpenseResponse(BaseModel):
    expense_id: int
    account_id: int
    allocation_type: str
    amount: Decimal
    expense_date: date
    old_allocation_balance: Decimal
    new_allocation_balance: Decimal
    new_current_balance: Decimal
    budget_update: Optional[dict] = None


class IncomeSourceEnum(str, Enum):
    GAJI = "Gaji"
    UANG_SAKU = "Uang Saku"
    UANG_KAGET = "Uang Kaget"
    HADIAH = "Hadiah"
    LAINNYA = "Lainnya"


class IncomeCreate(BaseModel):
    account_allocation_id: int
    amount: Decimal = Field(..., gt=0, description="Income amount")
    received_date: Optional[date] = None
    income_source: IncomeSourceEnum = IncomeSourceEnum.LAINNYA
    note: Optional[str] = Field(None, max_length=255)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class IncomeResponse(BaseModel):
    income_id: int
    account_id: int
    allocation_type: str
    amount: Decimal
    income_source: str
    received_date: date
    old_allocation_balance: Decimal
    new_allocation_balance: Decimal
    new_current_balance: Decimal
    budget_tracking: Optional[BudgetSnapshot] = None


class IncomeRecord(BaseModel):
    id: int
    account_id: int
    allocation_type: str
    amount: Decimal
    income_source: str
    note: Optional[str] = None
    received_date: date


class MonthlyExpenseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    total_amount: Decimal = Field(..., ge=0)
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('total_amount')
    @classmethod
    def validate_total_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class MonthlyExpenseResponse(BaseModel):
    id: int
    name: str
    total_amount: Decimal
    month: int
    year: int
    is_active: bool

    class Config:
        from_attributes = True
