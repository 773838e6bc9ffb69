from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from src.db.core import AccountDB, BankDataDB, NotFoundError, AuthorizationError, InvalidInputError


# ===== BANK CATALOG =====

def read_db_banks(db: Session) -> List[BankDataDB]:
    return db.query(BankDataDB).order_by(BankDataDB.id).all()


def read_db_bank(db: Session, bank_id: int) -> Optional[BankDataDB]:
    return db.query(BankDataDB).filter(BankDataDB.id == bank_id).first()


def require_bank(db: Session, bank_id: int) -> BankDataDB:
    bank = read_db_bank(db, bank_id)
    if not bank:
        raise InvalidInputError(f"Bank with id {bank_id} not found")
    return bank


# ===== DATABASE OPERATIONS =====

def create_db_account(db: Session, user_id: int, bank_id: int,
                      balance: Decimal = Decimal("0.00")) -> AccountDB:
    """Create a new account for a user. Flushes only; the caller owns the transaction."""

    now = datetime.utcnow()
    db_account = AccountDB(
        user_id=user_id,
        bank_id=bank_id,
        initial_balance=balance,
        current_balance=balance,
        created_at=now,
        updated_at=now
    )
    db.add(db_account)
    db.flush()
    return db_account


def read_db_account(db: Session, account_id: int, user_id: Optional[int] = None) -> Optional[AccountDB]:
    """Read an account by ID, optionally filtering by user"""

    query = db.query(AccountDB).filter(AccountDB.id == account_id)

    if user_id:
        query = query.filter(AccountDB.user_id == user_id)

    return query.first()


def require_owned_account(db: Session, account_id: int, user_id: int) -> AccountDB:
    """Fetch an account, distinguishing a missing id from someone else's account"""

    account = read_db_account(db, account_id)
    if not account:
        raise NotFoundError(f"Account with id {account_id} not found")
    if account.user_id != user_id:
        raise AuthorizationError(f"Account {account_id} does not belong to user {user_id}")
    return account


def read_db_accounts_ordered(db: Session, user_id: int) -> List[AccountDB]:
    """All accounts of a user, oldest first. Ties on created_at fall back to id."""
    return db.query(AccountDB).filter(
        AccountDB.user_id == user_id
    ).order_by(AccountDB.created_at, AccountDB.id).all()


def get_accounts_count(db: Session, user_id: int) -> int:
    return db.query(AccountDB).filter(AccountDB.user_id == user_id).count()


def set_account_balance(db: Session, account: AccountDB, new_balance: Decimal) -> AccountDB:
    """Write a recomputed aggregate. initial_balance tracks the latest recompute."""

    account.current_balance = round(new_balance, 2)
    account.initial_balance = account.current_balance
    account.updated_at = datetime.utcnow()
    db.flush()
    return account
