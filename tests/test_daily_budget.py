from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from conftest import money
from src.db import core
from src.db.core import AccountAllocationDB, AllocationType, AuthorizationError, BudgetDB, InvalidInputError
from src.crud import crud_account, crud_budget
from src.crud.crud_allocation import create_db_allocation
from src.models.budget import MonthlyExpenseCreate
from src.services import coordinator, daily_budget
from test_rebalancer import first_account, two_accounts

K, T, D = AllocationType.KEBUTUHAN, AllocationType.TABUNGAN, AllocationType.DARURAT

TODAY = date(2026, 4, 15)  # April has 30 days
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def account(db, user, banks):
    db_account = crud_account.create_db_account(db, user.db_id, banks[0].id)
    db.commit()
    return db_account


def add_budget_row(db, user, account, day, daily, initial, saving):
    db.add(BudgetDB(
        user_id=user.db_id,
        account_id=account.id,
        budget_date=day,
        daily_budget=Decimal(daily),
        initial_daily_budget=Decimal(initial) if initial is not None else None,
        daily_saving=Decimal(saving),
    ))
    db.commit()


def add_expense(db, user, account, day, amount):
    crud_budget.create_db_expense(db, user.db_id, account.id, K, Decimal(amount), day)
    db.commit()


@pytest.mark.parametrize("base, days, expected", [
    ("3000000", 30, "100000"),
    ("100000", 30, "3333"),
    ("45", 30, "2"),
    ("44", 30, "1"),
    ("0", 31, "0"),
])
def test_compute_daily_budget_rounds_half_up(base, days, expected):
    assert daily_budget.compute_daily_budget(Decimal(base), days) == Decimal(expected)


def test_days_in_month():
    assert daily_budget.days_in_month(date(2026, 2, 10)) == 28
    assert daily_budget.days_in_month(date(2028, 2, 10)) == 29
    assert daily_budget.days_in_month(date(2026, 1, 31)) == 31
    assert daily_budget.days_in_month(TODAY) == 30


def test_carry_forward_adds_unspent_allowance_to_saving(db, user, account):
    add_budget_row(db, user, account, YESTERDAY, "100000", "100000", "5000")
    add_expense(db, user, account, YESTERDAY, "40000")
    add_expense(db, user, account, YESTERDAY, "30000")

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)
    db.commit()

    assert snapshot.error is None
    assert snapshot.is_new_record is True
    assert snapshot.daily_saving == money(35000)
    assert snapshot.daily_budget == Decimal("100000")
    assert snapshot.initial_daily_budget == snapshot.daily_budget
    assert snapshot.days_in_month == 30


def test_carry_forward_uses_initial_allowance_not_remaining(db, user, account):
    # expenses already came off daily_budget during the day
    add_budget_row(db, user, account, YESTERDAY, "30000", "100000", "5000")
    add_expense(db, user, account, YESTERDAY, "70000")

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)

    assert snapshot.daily_saving == money(35000)


def test_overspent_yesterday_carries_nothing(db, user, account):
    add_budget_row(db, user, account, YESTERDAY, "0", "100000", "5000")
    add_expense(db, user, account, YESTERDAY, "150000")

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)

    assert snapshot.daily_saving == money(5000)


def test_no_row_yesterday_starts_saving_at_zero(db, user, account):
    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("600000"), today=TODAY)

    assert snapshot.daily_saving == 0
    assert snapshot.daily_budget == Decimal("20000")


def test_same_day_recompute_keeps_saving(db, user, account):
    add_budget_row(db, user, account, TODAY, "1000", "100000", "12345")

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("900000"), today=TODAY)
    db.commit()

    assert snapshot.is_new_record is False
    assert snapshot.daily_saving == money(12345)
    assert snapshot.daily_budget == Decimal("30000")
    assert db.query(BudgetDB).filter(BudgetDB.budget_date == TODAY).count() == 1


def test_failed_recompute_returns_degraded_snapshot(db, user, account, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("budget table unavailable")

    monkeypatch.setattr(daily_budget.crud_budget, "read_db_budget_for_day", broken)

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)

    assert snapshot.error == "budget table unavailable"
    assert snapshot.daily_budget == 0
    assert snapshot.daily_saving == 0
    assert snapshot.budget_id is None


def test_degraded_recompute_does_not_undo_the_balance_update(db, user, banks, monkeypatch):
    account = first_account(db, user, banks, kebutuhan=100000)

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(daily_budget, "_recalculate", broken)
    result = coordinator.update_account_balance(db, user.db_id, account.id, K, Decimal("250000"))

    assert result.budget_tracking.error == "boom"
    assert result.account_balance.new_current_balance == money(250000)
    db.expire_all()
    assert coordinator.accounts_snapshot(db, user.db_id)[0].current_balance == money(250000)


def test_monthly_expenses_reduce_the_base_when_enabled(db, user, account, monkeypatch):
    monkeypatch.setattr(daily_budget, "SUBTRACT_MONTHLY_EXPENSES", True)
    crud_budget.create_db_monthly_expense(
        db, user.db_id, MonthlyExpenseCreate(name="Kos", total_amount=Decimal("600000")), month=4, year=2026
    )

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)

    assert snapshot.daily_budget == Decimal("80000")


def test_monthly_expenses_ignored_by_default(db, user, account):
    crud_budget.create_db_monthly_expense(
        db, user.db_id, MonthlyExpenseCreate(name="Kos", total_amount=Decimal("600000")), month=4, year=2026
    )

    snapshot = daily_budget.recalculate(db, user.db_id, account.id, Decimal("3000000"), today=TODAY)

    assert snapshot.daily_budget == Decimal("100000")


def test_apply_expense_spends_allowance_then_saving(db, user, account):
    add_budget_row(db, user, account, TODAY, "100", "100", "50")

    update = daily_budget.apply_expense(db, user.db_id, account.id, Decimal("120"), today=TODAY)

    assert update["new_daily_budget"] == 0
    assert update["new_daily_saving"] == Decimal("30")
    assert update["is_over_budget"] is True


def test_apply_expense_never_goes_below_zero(db, user, account):
    add_budget_row(db, user, account, TODAY, "100", "100", "50")

    update = daily_budget.apply_expense(db, user.db_id, account.id, Decimal("500"), today=TODAY)

    assert update["new_daily_budget"] == 0
    assert update["new_daily_saving"] == 0


def test_apply_expense_without_row_today(db, user, account):
    assert daily_budget.apply_expense(db, user.db_id, account.id, Decimal("10"), today=TODAY) is None


def test_record_kebutuhan_expense_updates_bucket_account_and_budget(db, user, banks):
    account = first_account(db, user, banks, kebutuhan=300000)
    kebutuhan = coordinator.accounts_snapshot(db, user.db_id)[0].allocations
    kebutuhan_id = next(a.id for a in kebutuhan if a.type.value == "Kebutuhan")
    today = daily_budget.local_today()
    allowance = daily_budget.compute_daily_budget(Decimal("300000"), daily_budget.days_in_month(today))

    result = coordinator.record_expense(db, user.db_id, kebutuhan_id, Decimal("2500"), note="Makan siang")

    assert result.account_id == account.id
    assert result.new_allocation_balance == money(297500)
    assert result.new_current_balance == money(297500)
    assert result.budget_update["new_daily_budget"] == allowance - Decimal("2500")


def test_expense_larger_than_bucket_is_rejected(db, user, banks):
    first_account(db, user, banks, kebutuhan=1000)
    kebutuhan_id = next(
        a.id for a in coordinator.accounts_snapshot(db, user.db_id)[0].allocations if a.type.value == "Kebutuhan"
    )

    with pytest.raises(InvalidInputError):
        coordinator.record_expense(db, user.db_id, kebutuhan_id, Decimal("1000.01"))


def test_today_summary_creates_missing_rows_and_totals_expenses(db, user, account):
    create_db_allocation(db, account.id, K, Decimal("3000000"))
    db.commit()
    add_expense(db, user, account, TODAY, "130000")

    summary = daily_budget.today_summary(db, user.db_id, today=TODAY)

    assert summary.budget_records_count == 1
    assert summary.initial_daily_budget == Decimal("100000")
    assert summary.today_expenses == money(130000)
    assert summary.is_over_budget is True
    assert summary.over_budget_amount == money(30000)
    assert summary.remaining_budget == 0


def test_allocations_are_dated_in_the_app_timezone(db, user, account, monkeypatch):
    # UTC+14: ahead of the server's date for most of the UTC day
    monkeypatch.setattr(core, "APP_TIMEZONE", "Pacific/Kiritimati")
    kiritimati_today = datetime.now(ZoneInfo("Pacific/Kiritimati")).date()

    explicit = create_db_allocation(db, account.id, K, Decimal("1000"))
    db.add(AccountAllocationDB(account_id=account.id, type=T, balance_per_type=Decimal("0")))
    db.flush()
    implicit = db.query(AccountAllocationDB).filter(AccountAllocationDB.type == T).one()

    assert explicit.allocation_date == kiritimati_today
    assert implicit.allocation_date == kiritimati_today
    assert daily_budget.local_today() == kiritimati_today


def bucket_id(db, user, account_index, bucket):
    allocations = coordinator.accounts_snapshot(db, user.db_id)[account_index].allocations
    return next(a.id for a in allocations if a.type.value == bucket)


def test_kebutuhan_income_grows_bucket_and_recomputes_budget(db, user, banks):
    account = first_account(db, user, banks, kebutuhan=300000)
    today = daily_budget.local_today()

    result = coordinator.record_income(db, user.db_id, bucket_id(db, user, 0, "Kebutuhan"), Decimal("60000"),
                                       income_source="Gaji", note="Gaji bulanan")

    assert result.account_id == account.id
    assert result.income_source == "Gaji"
    assert result.received_date == today
    assert result.old_allocation_balance == money(300000)
    assert result.new_allocation_balance == money(360000)
    assert result.new_current_balance == money(360000)
    assert result.budget_tracking.error is None
    assert result.budget_tracking.is_new_record is False
    assert result.budget_tracking.daily_budget == daily_budget.compute_daily_budget(
        Decimal("360000"), daily_budget.days_in_month(today)
    )


def test_tabungan_income_reprices_account_without_budget(db, user, banks):
    two_accounts(db, user, banks)

    result = coordinator.record_income(db, user.db_id, bucket_id(db, user, 1, "Tabungan"), Decimal("25000"))

    assert result.income_source == "Lainnya"
    assert result.new_allocation_balance == money(75000)
    # second of two accounts counts Tabungan + Darurat
    assert result.new_current_balance == money(75000)
    assert result.budget_tracking is None
    assert [i.amount for i in coordinator.list_incomes(db, user.db_id)] == [money(25000)]


def test_income_survives_a_failed_budget_recompute(db, user, banks, monkeypatch):
    first_account(db, user, banks, kebutuhan=100000)

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(daily_budget, "_recalculate", broken)
    result = coordinator.record_income(db, user.db_id, bucket_id(db, user, 0, "Kebutuhan"), Decimal("5000"))

    assert result.budget_tracking.error == "boom"
    db.expire_all()
    assert coordinator.accounts_snapshot(db, user.db_id)[0].current_balance == money(105000)
    assert len(coordinator.list_incomes(db, user.db_id)) == 1


def test_income_validation_and_ownership(db, user, other_user, banks):
    first_account(db, user, banks)
    kebutuhan_id = bucket_id(db, user, 0, "Kebutuhan")

    with pytest.raises(InvalidInputError):
        coordinator.record_income(db, user.db_id, kebutuhan_id, Decimal("0"))
    with pytest.raises(InvalidInputError):
        coordinator.record_income(db, user.db_id, kebutuhan_id, Decimal("10"), income_source="Lotre")
    with pytest.raises(AuthorizationError):
        coordinator.record_income(db, other_user.db_id, kebutuhan_id, Decimal("10"))

    assert coordinator.list_incomes(db, user.db_id) == []
