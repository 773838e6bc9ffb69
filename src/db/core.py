import os
from typing import Optional
from sqlalchemy import create_engine, event, ForeignKey, Index, UniqueConstraint, Boolean, Integer, String, Text, DECIMAL, DateTime, Date
from sqlalchemy.engine import Engine
from sqlalchemy.types import Enum
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Mapped, relationship, mapped_column
from datetime import datetime, date
from uuid import UUID
from decimal import Decimal
from zoneinfo import ZoneInfo
import enum


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///bucketwise.db")
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Jakarta")


def local_today() -> date:
    """Calendar date in the app timezone; budgets, ledgers and allocations all date by this"""
    return datetime.now(ZoneInfo(APP_TIMEZONE)).date()


class NotFoundError(Exception):
    pass


class InvalidInputError(ValueError):
    """Malformed or out-of-range input. Raised before any write."""
    pass


class AuthorizationError(Exception):
    """The account or allocation does not belong to the requesting user."""
    pass


class PolicyViolationError(Exception):
    """Requested bucket type is not allowed for the current account count."""
    pass


class ConsistencyError(Exception):
    """An expected row was missing mid-operation. The transaction is rolled back."""
    pass


class Base(DeclarativeBase):
    pass


class AllocationType(str, enum.Enum):
    KEBUTUHAN = "Kebutuhan"
    TABUNGAN = "Tabungan"
    DARURAT = "Darurat"


class IncomeSource(str, enum.Enum):
    GAJI = "Gaji"
    UANG_SAKU = "Uang Saku"
    UANG_KAGET = "Uang Kaget"
    HADIAH = "Hadiah"
    LAINNYA = "Lainnya"


class UserStatus(str, enum.Enum):
    PELAJAR = "Pelajar"
    MAHASISWA = "Mahasiswa"
    PEKERJA = "Pekerja"
    PENGANGGURAN = "Pengangguran"
    LAINNYA = "Lainnya"


class UserDB(Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        UniqueConstraint("username", name="uq_user_username"),
        Index("idx_users_email", "email"),
    )

    # Core User Identification
    db_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    id: Mapped[UUID] = mapped_column(unique=True, nullable=False)

    # Authentication
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[Optional[UserStatus]] = mapped_column(Enum(UserStatus, values_callable=lambda e: [m.value for m in e]), nullable=True)

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    accounts = relationship("AccountDB", back_populates="user", cascade="all, delete",
                            order_by=lambda: [AccountDB.created_at, AccountDB.id])
    budgets = relationship("BudgetDB", back_populates="user", cascade="all, delete")
    expenses = relationship("ExpenseDB", back_populates="user", cascade="all, delete")
    incomes = relationship("IncomeDB", back_populates="user", cascade="all, delete")
    monthly_expenses = relationship("MonthlyExpenseDB", back_populates="user", cascade="all, delete")


class BankDataDB(Base):
    __tablename__ = "bank_data"

    __table_args__ = (
        UniqueConstraint("code_name", name="uq_bank_code_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code_name: Mapped[str] = mapped_column(String(50), nullable=False)  # "BCA", "MANDIRI"
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)

    accounts = relationship("AccountDB", back_populates="bank")


class AccountDB(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        # Chronological ordering drives the 2-account Bank A / Bank B split
        Index("idx_accounts_user_created", "user_id", "created_at", "id"),
    )

    # Core Account Identification
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.db_id", ondelete="CASCADE"), nullable=False)
    bank_id: Mapped[int] = mapped_column(ForeignKey("bank_data.id"), nullable=False)

    # Balance Tracking
    initial_balance: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), default=Decimal("0.00"))
    current_balance: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), default=Decimal("0.00"))

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("UserDB", back_populates="accounts")
    bank = relationship("BankDataDB", back_populates="accounts")
    allocations = relationship("AccountAllocationDB", back_populates="account", cascade="all, delete",
                               order_by="AccountAllocationDB.id")
    budgets = relationship("BudgetDB", back_populates="account", cascade="all, delete")


class AccountAllocationDB(Base):
    __tablename__ = "accounts_allocation"

    __table_args__ = (
        Index("idx_allocation_account_type_date", "account_id", "type", "allocation_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    # Bucket Data
    type: Mapped[AllocationType] = mapped_column(Enum(AllocationType, values_callable=lambda e: [m.value for m in e]))
    balance_per_type: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False, default=Decimal("0.00"))
    allocation_date: Mapped[date] = mapped_column(Date, nullable=False, default=local_today)  # date the figure applies to

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("AccountDB", back_populates="allocations")


class BudgetDB(Base):
    __tablename__ = "budgets"

    __table_args__ = (
        # One row per user per account per calendar day
        UniqueConstraint("user_id", "account_id", "budget_date", name="uq_budget_user_account_date"),
        Index("idx_budgets_user_date", "user_id", "budget_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.db_id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    budget_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Daily Allowance
    daily_budget: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), default=Decimal("0.00"))
    initial_daily_budget: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(15, 2))
    daily_saving: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), default=Decimal("0.00"))

    # Audit Trail
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserDB", back_populates="budgets")
    account = relationship("AccountDB", back_populates="budgets")


class ExpenseDB(Base):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_user_account_date", "user_id", "account_id", "expense_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.db_id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    allocation_type: Mapped[AllocationType] = mapped_column(Enum(AllocationType, values_callable=lambda e: [m.value for m in e]))

    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="expenses")


class IncomeDB(Base):
    __tablename__ = "incomes"

    __table_args__ = (
        Index("idx_incomes_user_account_date", "user_id", "account_id", "received_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.db_id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    allocation_type: Mapped[AllocationType] = mapped_column(Enum(AllocationType, values_callable=lambda e: [m.value for m in e]))

    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    income_source: Mapped[IncomeSource] = mapped_column(
        Enum(IncomeSource, values_callable=lambda e: [m.value for m in e]), default=IncomeSource.LAINNYA
    )
    note: Mapped[Optional[str]] = mapped_column(Text)
    received_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="incomes")


class MonthlyExpenseDB(Base):
    __tablename__ = "monthly_expenses"

    __table_args__ = (
        UniqueConstraint("user_id", "name", "month", "year", name="uq_monthly_expense_user_name_period"),
        Index("idx_monthly_expenses_user_period", "user_id", "month", "year"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.db_id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)  # "Rent", "Electricity"
    total_amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-12
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="monthly_expenses")


def configure_sqlite(sqlite_engine: Engine) -> Engine:
    """
    Make pysqlite honour BEGIN/SAVEPOINT and foreign keys.
    Without this the driver defers BEGIN and nested transactions misbehave.
    """
    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return sqlite_engine


engine = create_engine(DATABASE_URL, echo=os.getenv("SQL_ECHO", "false").lower() == "true")
if engine.dialect.name == "sqlite":
    configure_sqlite(engine)
session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency to get the database session
def get_db():
    database = session_local()
    try:
        yield database
    finally:
        database.close()
