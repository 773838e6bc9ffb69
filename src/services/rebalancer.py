"""
Allocation Rebalancer

Decides how the three buckets (Kebutuhan, Tabungan, Darurat) are laid out over
a user's accounts when the account count changes, when a bucket is reassigned
to another type, and when a bucket's balance is overwritten.

Account-count transitions:
- 0 -> 1: the new account holds all three buckets at 0
- 1 -> 2: only Tabungan or Darurat may be requested; the first account keeps
          Kebutuhan alone and the new account holds Tabungan + Darurat
- 2 -> 3: only Darurat may be requested; it moves off the second account
- 3+:     any bucket, nothing is stripped

All writes go through the allocation store and only flush. Commit/rollback
belongs to the coordinator.
"""
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from src.db.core import (
    AccountDB,
    AccountAllocationDB,
    AllocationType,
    PolicyViolationError,
    ConsistencyError
)
from src.crud import crud_allocation
from src.crud.crud_account import read_db_accounts_ordered, set_account_balance
from src.services import balance_calculator
from src.logging_config import get_logger

logger = get_logger(__name__)


ZERO = Decimal("0.00")

ADVISORY_MESSAGES = {
    1: "Bagus, tapi saran dari aku sih kamu harus ada minimal 2 akun, untuk kebutuhan dan tabungan",
    2: "Mantap, 2 akun cukup tapi 3 akun lebih baik, untuk kebutuhan, tabungan, dan dana darurat",
    3: "Wah, kamu keren! Dengan lebih dari 3 akun, kamu pasti sudah sangat terorganisir dalam mengelola keuanganmu.",
}

# Bucket types a new account may request, keyed by the count before it is added
ALLOWED_TYPES_BY_PREVIOUS_COUNT = {
    1: (AllocationType.TABUNGAN, AllocationType.DARURAT),
    2: (AllocationType.DARURAT,),
}


def advisory_message(account_count: int) -> str:
    if account_count <= 1:
        return ADVISORY_MESSAGES[1]
    if account_count == 2:
        return ADVISORY_MESSAGES[2]
    return ADVISORY_MESSAGES[3]


def check_transition(previous_count: int, requested_type: AllocationType) -> None:
    """Raise PolicyViolationError when the requested bucket is not allowed for this transition"""

    allowed = ALLOWED_TYPES_BY_PREVIOUS_COUNT.get(previous_count)
    if allowed is None or requested_type in allowed:
        return

    if previous_count == 1:
        message = "Cannot add Kebutuhan type when you already have 1 account. Choose Tabungan or Darurat."
    else:
        message = "When you have 2 accounts, you can only add Darurat type to create a third account."

    logger.warning(f"Rejected {requested_type.value} for a new account at count {previous_count}")
    raise PolicyViolationError(message)


# ===== RECOMPUTE HELPERS =====

def refresh_allocations(db: Session, accounts: Sequence[AccountDB]) -> None:
    """Drop cached allocation collections so the next read reflects flushed writes"""
    for account in accounts:
        db.expire(account, ["allocations"])


def recompute_count_sensitive(db: Session, user_id: int,
                              account_ids: Optional[Sequence[int]] = None) -> List[AccountDB]:
    """
    Recompute current_balance with the count-sensitive rule.

    Args:
        account_ids: limit the writes to these accounts; ordering and count
            always come from every account the user holds
    """
    accounts = read_db_accounts_ordered(db, user_id)
    refresh_allocations(db, accounts)

    updated = []
    for account in accounts:
        if account_ids is not None and account.id not in account_ids:
            continue
        set_account_balance(db, account, balance_calculator.compute_balance(account, accounts))
        updated.append(account)
    return updated


def recompute_plain_sum(db: Session, user_id: int) -> List[AccountDB]:
    """Recompute every account of the user as the sum of its own allocations"""
    accounts = read_db_accounts_ordered(db, user_id)
    refresh_allocations(db, accounts)

    for account in accounts:
        set_account_balance(db, account, balance_calculator.plain_sum(account))
    return accounts


# ===== ACCOUNT COUNT TRANSITIONS =====

def on_account_count_change(
    db: Session,
    user_id: int,
    previous_count: int,
    new_account: AccountDB,
    requested_type: AllocationType,
    requested_balance: Decimal
) -> Dict:
    """
    Redistribute buckets after new_account has been created.

    Returns: allocations_created, allocations_deleted (ids), message
    """
    check_transition(previous_count, requested_type)

    accounts = read_db_accounts_ordered(db, user_id)
    created: List[AccountAllocationDB] = []
    deleted: List[int] = []

    if previous_count == 0:
        for allocation_type in AllocationType:
            created.append(crud_allocation.create_db_allocation(db, new_account.id, allocation_type, ZERO))
        message = advisory_message(1)

    elif previous_count == 1:
        first_account = accounts[0]
        deleted.extend(crud_allocation.delete_db_allocation_types(
            db, first_account.id, (AllocationType.TABUNGAN, AllocationType.DARURAT)
        ))

        other_type = AllocationType.DARURAT if requested_type == AllocationType.TABUNGAN else AllocationType.TABUNGAN
        created.append(crud_allocation.create_db_allocation(db, new_account.id, requested_type, requested_balance))
        created.append(crud_allocation.create_db_allocation(db, new_account.id, other_type, ZERO))
        message = (f"Account added successfully. Bank A now has Kebutuhan only, "
                   f"Bank B has {requested_type.value} and {other_type.value}.")

    elif previous_count == 2:
        second_account = accounts[1]
        darurat = crud_allocation.get_allocation_by_type(db, second_account.id, AllocationType.DARURAT)
        if not darurat:
            raise ConsistencyError(
                f"Account {second_account.id} has no Darurat allocation to move. Please retry after reviewing your accounts."
            )
        deleted.append(crud_allocation.delete_db_allocation(db, darurat))

        created.append(crud_allocation.create_db_allocation(db, new_account.id, AllocationType.DARURAT, requested_balance))
        message = "Account added successfully. Darurat moved from Bank B to new Bank C."

    else:
        created.append(crud_allocation.create_db_allocation(db, new_account.id, requested_type, requested_balance))
        message = f"Account added successfully with {requested_type.value} type."

    recompute_count_sensitive(db, user_id)

    logger.info(
        f"User {user_id}: accounts {previous_count} -> {previous_count + 1}, "
        f"created {len(created)} allocation(s), deleted {deleted}"
    )

    return {
        'allocations_created': created,
        'allocations_deleted': deleted,
        'message': message
    }


def layout_onboarding_allocations(db: Session, user_id: int) -> List[AccountAllocationDB]:
    """
    Wipe every allocation of the user and lay out K/T/D at 0 by account count:
    1 account holds all three, 2 split K | T+D, 3+ put one bucket on each of the
    three oldest accounts.
    """
    accounts = read_db_accounts_ordered(db, user_id)
    crud_allocation.delete_db_allocations_for_accounts(db, [a.id for a in accounts])

    if len(accounts) == 1:
        layout = [(accounts[0], t) for t in AllocationType]
    elif len(accounts) == 2:
        layout = [
            (accounts[0], AllocationType.KEBUTUHAN),
            (accounts[1], AllocationType.TABUNGAN),
            (accounts[1], AllocationType.DARURAT),
        ]
    else:
        layout = [
            (accounts[0], AllocationType.KEBUTUHAN),
            (accounts[1], AllocationType.TABUNGAN),
            (accounts[2], AllocationType.DARURAT),
        ]

    created = [crud_allocation.create_db_allocation(db, account.id, t, ZERO) for account, t in layout]
    recompute_count_sensitive(db, user_id)

    logger.info(f"User {user_id}: onboarding layout over {len(accounts)} account(s)")
    return created


# ===== TYPE SWAP =====

def on_allocation_type_swap(db: Session, user_id: int, target: AccountAllocationDB,
                            new_type: AllocationType) -> Dict:
    """
    Reassign target to new_type. When another allocation already holds new_type,
    the two rows exchange type, balance_per_type and account_id; otherwise the
    target is relabelled. Every account is then recomputed as a plain sum.

    Returns: swapped, counterpart
    """
    total_accounts = len(read_db_accounts_ordered(db, user_id))

    # A single account can only swap within itself
    search_account_id = target.account_id if total_accounts <= 1 else None
    counterpart = crud_allocation.find_user_allocation_by_type(
        db, user_id, new_type, exclude_id=target.id, account_id=search_account_id
    )

    if counterpart:
        target_type, target_balance, target_account_id = target.type, target.balance_per_type, target.account_id
        counterpart_type, counterpart_balance, counterpart_account_id = (
            counterpart.type, counterpart.balance_per_type, counterpart.account_id
        )

        crud_allocation.update_db_allocation(
            db, target, allocation_type=counterpart_type,
            balance=counterpart_balance, account_id=counterpart_account_id
        )
        crud_allocation.update_db_allocation(
            db, counterpart, allocation_type=target_type,
            balance=target_balance, account_id=target_account_id
        )
        db.expire(target, ["account"])
        db.expire(counterpart, ["account"])

        logger.info(f"User {user_id}: swapped allocation {target.id} with {counterpart.id} ({target_type.value} <-> {new_type.value})")
    else:
        old_type = target.type
        crud_allocation.update_db_allocation(db, target, allocation_type=new_type)
        logger.info(f"User {user_id}: relabelled allocation {target.id} {old_type.value} -> {new_type.value}")

    recompute_plain_sum(db, user_id)

    return {
        'swapped': counterpart is not None,
        'counterpart': counterpart
    }


# ===== BALANCE CHANGE =====

def on_allocation_balance_change(db: Session, user_id: int, target: AccountAllocationDB,
                                 new_balance: Decimal) -> AccountDB:
    """Overwrite the bucket's balance and reprice its account with the count-sensitive rule"""

    crud_allocation.update_db_allocation(db, target, balance=new_balance)
    updated = recompute_count_sensitive(db, user_id, account_ids=[target.account_id])
    return updated[0]
