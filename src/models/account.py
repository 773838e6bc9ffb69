from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing_extensions import Self

from src.models.budget import BudgetSnapshot


# ===== ALLOCATION / ACCOUNT PYDANTIC MODELS =====

class AllocationTypeEnum(str, Enum):
    KEBUTUHAN = "Kebutuhan"
    TABUNGAN = "Tabungan"
    DARURAT = "Darurat"


class BankResponse(BaseModel):
    id: int
    code_name: str
    bank_name: str

    class Config:
        from_attributes = True


class AccountOnboard(BaseModel):
    bank_id: int = Field(..., description="Bank catalog id")


class AccountCreate(BaseModel):
    bank_id: int = Field(..., description="Bank catalog id")
    type: AllocationTypeEnum = Field(..., description="Bucket the new account will hold")
    balance_per_type: Decimal = Field(..., ge=0, description="Starting balance of the requested bucket")

    @field_validator('balance_per_type')
    @classmethod
    def validate_balance_per_type(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class AllocationUpdate(BaseModel):
    """Reassign a bucket's type and/or overwrite its balance - at least one required"""
    account_allocation_id: int
    new_type: Optional[AllocationTypeEnum] = None
    new_balance: Optional[Decimal] = Field(None, ge=0)

    @field_validator('new_balance')
    @classmethod
    def validate_new_balance(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v

    @model_validator(mode="after")
    def check_any_change_requested(self) -> Self:
        if self.new_type is None and self.new_balance is None:
            raise ValueError("Provide new_type, new_balance, or both")
        return self


class AccountBalanceUpdate(BaseModel):
    account_id: int
    type: AllocationTypeEnum
    balance_per_type: Decimal = Field(..., ge=0)

    @field_validator('balance_per_type')
    @classmethod
    def validate_balance_per_type(cls, v: Decimal) -> Decimal:
        return round(v, 2)


class AllocationResponse(BaseModel):
    id: int
    account_id: int
    type: AllocationTypeEnum
    balance_per_type: Decimal
    allocation_date: date

    class Config:
        from_attributes = True


class AccountSummary(BaseModel):
    """Account with its buckets, in chronological order"""
    id: int
    bank_id: int
    bank_code: Optional[str] = None
    initial_balance: Decimal
    current_balance: Decimal
    created_at: datetime
    allocations: List[AllocationResponse] = []


class NewAccount(BaseModel):
    id: int
    bank_id: int
    current_balance: Decimal
    type: AllocationTypeEnum
    balance_per_type: Decimal


class AddAccountResponse(BaseModel):
    message: str
    new_account: NewAccount
    total_accounts: int
    allocations_created: List[AllocationResponse]
    allocations_deleted: List[int]
    accounts_summary: List[AccountSummary]
    budget_tracking: Optional[BudgetSnapshot] = None


class OnboardResponse(BaseModel):
    message: str
    account_count: int
    new_account: AccountSummary
    accounts_summary: List[AccountSummary]


class ChangeSummary(BaseModel):
    allocation_id: int
    old_type: AllocationTypeEnum
    new_type: AllocationTypeEnum
    old_balance: Decimal
    new_balance: Decimal
    old_account_id: int
    new_account_id: int
    swapped: bool = False
    counterpart_id: Optional[int] = None


class UpdateAllocationResponse(BaseModel):
    no_op: bool
    change_summary: Optional[ChangeSummary] = None
    updated_accounts: List[AccountSummary]
    budget_tracking: Optional[BudgetSnapshot] = None


class AllocationBalanceChange(BaseModel):
    old_balance_per_type: Decimal
    new_balance_per_type: Decimal
    balance_change: Decimal


class AccountBalanceChange(BaseModel):
    old_current_balance: Decimal
    new_current_balance: Decimal
    current_balance_change: Decimal


class UpdateAccountBalanceResponse(BaseModel):
    account_id: int
    type: AllocationTypeEnum
    total_banks: int
    allocation_update: AllocationBalanceChange
    account_balance: AccountBalanceChange
    calculation_method: str
    budget_tracking: Optional[BudgetSnapshot] = None
