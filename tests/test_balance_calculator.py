from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.db.core import AllocationType
from src.services.balance_calculator import (
    balances_by_type,
    calculation_method,
    compute_balance,
    plain_sum,
)

K, T, D = AllocationType.KEBUTUHAN, AllocationType.TABUNGAN, AllocationType.DARURAT


def make_account(account_id, **balances):
    allocations = [
        SimpleNamespace(type=AllocationType[name.upper()], balance_per_type=Decimal(str(amount)))
        for name, amount in balances.items()
    ]
    return SimpleNamespace(id=account_id, allocations=allocations)


def test_single_account_excludes_darurat():
    account = make_account(1, kebutuhan=100000, tabungan=50000, darurat=30000)
    assert compute_balance(account, [account]) == Decimal("150000")


def test_single_account_missing_types_count_as_zero():
    account = make_account(1, darurat=30000)
    assert compute_balance(account, [account]) == Decimal("0")


def test_two_accounts_first_is_kebutuhan_only():
    first = make_account(1, kebutuhan=200000, tabungan=10000)
    second = make_account(2, tabungan=50000, darurat=25000, kebutuhan=999)
    ordered = [first, second]

    assert compute_balance(first, ordered) == Decimal("200000")
    assert compute_balance(second, ordered) == Decimal("75000")


def test_two_accounts_position_follows_given_order_not_id():
    older = make_account(9, kebutuhan=100)
    newer = make_account(3, tabungan=40, darurat=2)

    assert compute_balance(older, [older, newer]) == Decimal("100")
    assert compute_balance(newer, [older, newer]) == Decimal("42")


def test_three_or_more_accounts_sum_everything():
    a = make_account(1, kebutuhan=100)
    b = make_account(2, tabungan=50)
    c = make_account(3, darurat=20, kebutuhan=5, tabungan=1)
    ordered = [a, b, c]

    assert compute_balance(c, ordered) == Decimal("26")
    assert compute_balance(a, ordered + [make_account(4)]) == Decimal("100")


def test_duplicate_types_on_one_account_are_added():
    account = make_account(1)
    account.allocations = [
        SimpleNamespace(type=K, balance_per_type=Decimal("10")),
        SimpleNamespace(type=K, balance_per_type=Decimal("15")),
    ]
    assert balances_by_type(account)[K] == Decimal("25")
    assert balances_by_type(account)[D] == Decimal("0")


def test_plain_sum_ignores_count_rules():
    account = make_account(1, kebutuhan=1, tabungan=2, darurat=3)
    assert plain_sum(account) == Decimal("6")


def test_account_outside_the_ordering_is_rejected():
    stranger = make_account(7, kebutuhan=1)
    with pytest.raises(ValueError):
        compute_balance(stranger, [make_account(1), make_account(2)])


def test_calculation_method_labels():
    a, b, c = make_account(1), make_account(2), make_account(3)

    assert calculation_method(a, [a]) == "Single bank: kebutuhan + tabungan"
    assert calculation_method(a, [a, b]) == "Bank 1: kebutuhan only"
    assert calculation_method(b, [a, b]) == "Bank 2: tabungan + darurat"
    assert calculation_method(c, [a, b, c]) == "Multiple banks: sum all allocations for this bank"
