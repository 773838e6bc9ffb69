from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event, func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.core import (
    Base,
    configure_sqlite,
    UserDB,
    BankDataDB,
    AccountDB,
    AccountAllocationDB,
    BudgetDB
)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(test_engine)
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, username="sari"):
    user = UserDB(
        id=uuid4(),
        email=f"{username}@example.com",
        username=username,
        password_hash="not-a-real-hash",
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def other_user(db):
    return make_user(db, "budi")


@pytest.fixture
def banks(db):
    catalog = [
        BankDataDB(code_name="BCA", bank_name="PT. BANK CENTRAL ASIA TBK."),
        BankDataDB(code_name="BNI", bank_name="PT. BANK NEGARA INDONESIA (PERSERO)"),
        BankDataDB(code_name="MANDIRI", bank_name="PT. BANK MANDIRI (PERSERO) TBK."),
        BankDataDB(code_name="BRI", bank_name="PT. BANK RAKYAT INDONESIA (PERSERO)"),
    ]
    db.add_all(catalog)
    db.commit()
    return catalog


def row_counts(db):
    """(accounts, allocations, budgets) currently stored"""
    db.expire_all()
    return (
        db.query(func.count(AccountDB.id)).scalar(),
        db.query(func.count(AccountAllocationDB.id)).scalar(),
        db.query(func.count(BudgetDB.id)).scalar(),
    )


class WriteCounter:
    """Counts INSERT/UPDATE/DELETE statements sent through an engine"""

    def __init__(self, engine):
        self.engine = engine
        self.writes = []

    def __enter__(self):
        event.listen(self.engine, "before_cursor_execute", self._record)
        return self

    def __exit__(self, *exc):
        event.remove(self.engine, "before_cursor_execute", self._record)

    def _record(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith(("INSERT", "UPDATE", "DELETE")):
            self.writes.append(statement)


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
