from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List, Iterable
from datetime import datetime, date
from decimal import Decimal

from src.db.core import AccountAllocationDB, AccountDB, AllocationType, NotFoundError, AuthorizationError, local_today
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== DATABASE OPERATIONS =====
# Every write flushes but never commits: rebalancing spans several of these calls
# and the coordinator decides whether the whole unit commits or rolls back.

def create_db_allocation(db: Session, account_id: int, allocation_type: AllocationType,
                         balance: Decimal = Decimal("0.00"),
                         allocation_date: Optional[date] = None) -> AccountAllocationDB:
    now = datetime.utcnow()
    db_allocation = AccountAllocationDB(
        account_id=account_id,
        type=allocation_type,
        balance_per_type=round(balance, 2),
        allocation_date=allocation_date or local_today(),
        created_at=now,
        updated_at=now
    )
    db.add(db_allocation)
    db.flush()
    logger.debug(f"Created {allocation_type.value} allocation on account {account_id} at {balance}")
    return db_allocation


def read_db_allocation(db: Session, allocation_id: int) -> Optional[AccountAllocationDB]:
    return db.query(AccountAllocationDB).filter(AccountAllocationDB.id == allocation_id).first()


def require_owned_allocation(db: Session, allocation_id: int, user_id: int) -> AccountAllocationDB:
    allocation = read_db_allocation(db, allocation_id)
    if not allocation:
        raise NotFoundError(f"Allocation with id {allocation_id} not found")
    if allocation.account.user_id != user_id:
        raise AuthorizationError(f"Allocation {allocation_id} does not belong to user {user_id}")
    return allocation


def read_db_allocations_for_user(db: Session, user_id: int) -> List[AccountAllocationDB]:
    """All of a user's allocations, grouped by account chronology"""
    return db.query(AccountAllocationDB).join(AccountDB).filter(
        AccountDB.user_id == user_id
    ).order_by(AccountDB.created_at, AccountDB.id, AccountAllocationDB.id).all()


def get_allocation_by_type(db: Session, account_id: int,
                           allocation_type: AllocationType) -> Optional[AccountAllocationDB]:
    return db.query(AccountAllocationDB).filter(
        AccountAllocationDB.account_id == account_id,
        AccountAllocationDB.type == allocation_type
    ).order_by(AccountAllocationDB.id).first()


def find_user_allocation_by_type(db: Session, user_id: int, allocation_type: AllocationType,
                                 exclude_id: Optional[int] = None,
                                 account_id: Optional[int] = None) -> Optional[AccountAllocationDB]:
    """First allocation of a type across the user's accounts (or within one account)"""

    query = db.query(AccountAllocationDB).join(AccountDB).filter(
        AccountDB.user_id == user_id,
        AccountAllocationDB.type == allocation_type
    )
    if exclude_id is not None:
        query = query.filter(AccountAllocationDB.id != exclude_id)
    if account_id is not None:
        query = query.filter(AccountAllocationDB.account_id == account_id)

    return query.order_by(AccountDB.created_at, AccountDB.id, AccountAllocationDB.id).first()


def update_db_allocation(db: Session, allocation: AccountAllocationDB,
                         allocation_type: Optional[AllocationType] = None,
                         balance: Optional[Decimal] = None,
                         account_id: Optional[int] = None) -> AccountAllocationDB:
    if allocation_type is not None:
        allocation.type = allocation_type
    if balance is not None:
        allocation.balance_per_type = round(balance, 2)
    if account_id is not None:
        allocation.account_id = account_id
    allocation.updated_at = datetime.utcnow()
    db.flush()
    return allocation


def delete_db_allocation(db: Session, allocation: AccountAllocationDB) -> int:
    allocation_id = allocation.id
    db.delete(allocation)
    db.flush()
    return allocation_id


def delete_db_allocation_types(db: Session, account_id: int,
                               allocation_types: Iterable[AllocationType]) -> List[int]:
    """Strip the given bucket types from an account; returns the deleted ids"""

    allocations = db.query(AccountAllocationDB).filter(
        AccountAllocationDB.account_id == account_id,
        AccountAllocationDB.type.in_(list(allocation_types))
    ).all()

    deleted_ids = []
    for allocation in allocations:
        deleted_ids.append(allocation.id)
        db.delete(allocation)
    db.flush()

    if deleted_ids:
        logger.info(f"Removed allocations {deleted_ids} from account {account_id}")
    return deleted_ids


def delete_db_allocations_for_accounts(db: Session, account_ids: List[int]) -> int:
    if not account_ids:
        return 0
    count = db.query(AccountAllocationDB).filter(
        AccountAllocationDB.account_id.in_(account_ids)
    ).delete(synchronize_session="fetch")
    db.flush()
    return count


def sum_allocations_by_type(db: Session, user_id: int, allocation_type: AllocationType) -> Decimal:
    """Total held in one bucket across all of a user's accounts (read by goal/badge consumers)"""
    result = db.query(func.coalesce(func.sum(AccountAllocationDB.balance_per_type), 0)).join(AccountDB).filter(
        AccountDB.user_id == user_id,
        AccountAllocationDB.type == allocation_type
    ).scalar()
    return Decimal(str(result)) if result else Decimal("0.00")
