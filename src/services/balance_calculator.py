"""
Account Balance Calculator

Derives an account's aggregate current_balance from its bucket allocations.
The rule depends on how many accounts the user holds and where this account
sits in chronological order:

- 1 account:  Kebutuhan + Tabungan (Darurat is kept out of the aggregate)
- 2 accounts: oldest account -> Kebutuhan only; second -> Tabungan + Darurat
- 3+:         sum of every allocation on the account

Nothing here touches the session; callers pass accounts whose `allocations`
are current.
"""
from decimal import Decimal
from typing import Dict, Iterable, Sequence

from src.db.core import AccountDB, AllocationType


ZERO = Decimal("0.00")

SINGLE_ACCOUNT_TYPES = (AllocationType.KEBUTUHAN, AllocationType.TABUNGAN)
BANK_A_TYPES = (AllocationType.KEBUTUHAN,)
BANK_B_TYPES = (AllocationType.TABUNGAN, AllocationType.DARURAT)


def balances_by_type(account: AccountDB) -> Dict[AllocationType, Decimal]:
    totals = {allocation_type: ZERO for allocation_type in AllocationType}
    for allocation in account.allocations:
        totals[allocation.type] += allocation.balance_per_type or ZERO
    return totals


def _sum_types(account: AccountDB, types: Iterable[AllocationType]) -> Decimal:
    totals = balances_by_type(account)
    return sum((totals[t] for t in types), ZERO)


def plain_sum(account: AccountDB) -> Decimal:
    return sum((a.balance_per_type or ZERO for a in account.allocations), ZERO)


def _position(account: AccountDB, accounts_ordered: Sequence[AccountDB]) -> int:
    for index, candidate in enumerate(accounts_ordered):
        if candidate.id == account.id:
            return index
    raise ValueError(f"Account {account.id} is not among the user's accounts")


def compute_balance(account: AccountDB, accounts_ordered: Sequence[AccountDB]) -> Decimal:
    """
    Count-sensitive aggregate for one account.

    Args:
        account: the account to price
        accounts_ordered: all of the user's accounts, oldest first (created_at, id)
    """
    total_accounts = len(accounts_ordered)

    if total_accounts <= 1:
        return _sum_types(account, SINGLE_ACCOUNT_TYPES)

    if total_accounts == 2:
        if _position(account, accounts_ordered) == 0:
            return _sum_types(account, BANK_A_TYPES)
        return _sum_types(account, BANK_B_TYPES)

    return plain_sum(account)


def calculation_method(account: AccountDB, accounts_ordered: Sequence[AccountDB]) -> str:
    """Human-readable label for the rule compute_balance applied"""
    total_accounts = len(accounts_ordered)

    if total_accounts <= 1:
        return "Single bank: kebutuhan + tabungan"
    if total_accounts == 2:
        if _position(account, accounts_ordered) == 0:
            return "Bank 1: kebutuhan only"
        return "Bank 2: tabungan + darurat"
    return "Multiple banks: sum all allocations for this bank"
