from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from src.main import app
from src.db.core import get_db, BankDataDB


@pytest.fixture
def bank_ids(session_factory):
    """Committed catalog ids. The session is closed so the shared test connection is idle again."""
    with session_factory() as session:
        catalog = [
            BankDataDB(code_name="BCA", bank_name="PT. BANK CENTRAL ASIA TBK."),
            BankDataDB(code_name="BNI", bank_name="PT. BANK NEGARA INDONESIA (PERSERO)"),
            BankDataDB(code_name="MANDIRI", bank_name="PT. BANK MANDIRI (PERSERO) TBK."),
            BankDataDB(code_name="BRI", bank_name="PT. BANK RAKYAT INDONESIA (PERSERO)"),
        ]
        session.add_all(catalog)
        session.commit()
        return [bank.id for bank in catalog]


@pytest.fixture
def client(session_factory, bank_ids):
    def override_get_db():
        database = session_factory()
        try:
            yield database
        finally:
            database.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user_id(client):
    response = client.post("/users/", json={
        "full_name": "Sari Wulandari",
        "status": "Mahasiswa",
        "email": "Sari@Example.com",
        "username": "sari_w",
        "password": "rahasia123",
        "confirm_password": "rahasia123",
    })
    assert response.status_code == 201
    return response.json()["db_id"]


def headers(user_id):
    return {"X-User-Id": str(user_id)}


def add_account(client, user_id, bank_id, bucket, balance):
    return client.post("/accounts/", headers=headers(user_id), json={
        "bank_id": bank_id, "type": bucket, "balance_per_type": balance
    })


def test_bank_catalog(client):
    response = client.get("/banks/")
    assert response.status_code == 200
    assert [b["code_name"] for b in response.json()] == ["BCA", "BNI", "MANDIRI", "BRI"]


def test_user_bootstrap_and_login(client, user_id):
    response = client.get(f"/users/{user_id}")
    assert response.status_code == 200
    assert response.json()["email"] == "sari@example.com"
    assert response.json()["status"] == "Mahasiswa"
    assert response.json()["account_count"] == 0

    login = client.post("/users/login", json={"email": "sari@example.com", "password": "rahasia123"})
    assert login.status_code == 200
    assert login.json()["user_id"] == user_id

    bad = client.post("/users/login", json={"email": "sari@example.com", "password": "salah-sekali"})
    assert bad.status_code == 401


def test_add_accounts_flow(client, user_id, bank_ids):
    first = add_account(client, user_id, bank_ids[0], "Kebutuhan", "0")
    assert first.status_code == 201
    assert first.json()["total_accounts"] == 1
    assert first.json()["budget_tracking"] is None

    second = add_account(client, user_id, bank_ids[1], "Tabungan", "50000")
    assert second.status_code == 201
    body = second.json()
    assert body["total_accounts"] == 2
    assert [a["type"] for a in body["accounts_summary"][0]["allocations"]] == ["Kebutuhan"]
    assert Decimal(body["accounts_summary"][1]["current_balance"]) == Decimal("50000")

    listing = client.get("/accounts/", headers=headers(user_id))
    assert listing.status_code == 200
    assert len(listing.json()) == 2
    assert listing.json()[0]["bank_code"] == "BCA"


def test_policy_violation_is_a_conflict(client, user_id, bank_ids):
    add_account(client, user_id, bank_ids[0], "Kebutuhan", "0")

    response = add_account(client, user_id, bank_ids[1], "Kebutuhan", "1000")

    assert response.status_code == 409
    assert len(client.get("/accounts/", headers=headers(user_id)).json()) == 1


def test_unknown_bank_is_a_bad_request(client, user_id):
    response = add_account(client, user_id, 9999, "Kebutuhan", "0")
    assert response.status_code == 400


def test_body_validation(client, user_id, bank_ids):
    assert add_account(client, user_id, bank_ids[0], "Kebutuhan", "-5").status_code == 422
    assert add_account(client, user_id, bank_ids[0], "Hiburan", "5").status_code == 422

    response = client.put("/allocations/", headers=headers(user_id), json={"account_allocation_id": 1})
    assert response.status_code == 422


def test_unknown_user_is_not_found(client):
    response = client.get("/accounts/", headers=headers(4242))
    assert response.json() == []

    response = client.get("/allocations/totals", headers=headers(4242))
    assert response.status_code == 404


def test_update_balance_and_allocation(client, user_id, bank_ids):
    account_id = add_account(client, user_id, bank_ids[0], "Kebutuhan", "0").json()["new_account"]["id"]

    response = client.put("/accounts/balance", headers=headers(user_id), json={
        "account_id": account_id, "type": "Kebutuhan", "balance_per_type": "310000"
    })
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["account_balance"]["new_current_balance"]) == Decimal("310000")
    assert body["calculation_method"] == "Single bank: kebutuhan + tabungan"
    assert body["budget_tracking"]["error"] is None
    assert Decimal(body["budget_tracking"]["daily_budget"]) > 0

    allocations = client.get("/allocations/", headers=headers(user_id)).json()
    kebutuhan_id = next(a["id"] for a in allocations if a["type"] == "Kebutuhan")

    no_op = client.put("/allocations/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "new_type": "Kebutuhan"
    })
    assert no_op.status_code == 200
    assert no_op.json()["no_op"] is True

    swap = client.put("/allocations/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "new_type": "Tabungan"
    })
    assert swap.status_code == 200
    assert swap.json()["change_summary"]["swapped"] is True

    totals = client.get("/allocations/totals", headers=headers(user_id)).json()
    # type and balance travel together, so the money stays in Kebutuhan
    assert Decimal(totals["Kebutuhan"]) == Decimal("310000")
    assert Decimal(totals["Tabungan"]) == 0
    assert Decimal(swap.json()["change_summary"]["new_balance"]) == 0


def test_someone_elses_allocation_is_forbidden(client, user_id, bank_ids):
    add_account(client, user_id, bank_ids[0], "Kebutuhan", "0")
    allocation_id = client.get("/allocations/", headers=headers(user_id)).json()[0]["id"]

    other = client.post("/users/", json={
        "email": "budi@example.com", "username": "budi", "password": "rahasia123", "confirm_password": "rahasia123"
    }).json()["db_id"]

    response = client.put("/allocations/", headers=headers(other), json={
        "account_allocation_id": allocation_id, "new_balance": "1"
    })
    assert response.status_code == 403

    missing = client.put("/allocations/", headers=headers(user_id), json={
        "account_allocation_id": 777, "new_balance": "1"
    })
    assert missing.status_code == 404


def test_expense_and_today_budget(client, user_id, bank_ids):
    account_id = add_account(client, user_id, bank_ids[0], "Kebutuhan", "0").json()["new_account"]["id"]
    client.put("/accounts/balance", headers=headers(user_id), json={
        "account_id": account_id, "type": "Kebutuhan", "balance_per_type": "3100000"
    })
    kebutuhan_id = next(
        a["id"] for a in client.get("/allocations/", headers=headers(user_id)).json() if a["type"] == "Kebutuhan"
    )

    expense = client.post("/expenses/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "amount": "25000", "note": "Bensin"
    })
    assert expense.status_code == 201
    assert Decimal(expense.json()["new_allocation_balance"]) == Decimal("3075000")
    assert expense.json()["budget_update"] is not None

    too_much = client.post("/expenses/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "amount": "99999999"
    })
    assert too_much.status_code == 400

    today = client.get("/budgets/today", headers=headers(user_id))
    assert today.status_code == 200
    assert today.json()["budget_records_count"] == 1
    assert Decimal(today.json()["today_expenses"]) == Decimal("25000")


def test_monthly_expense_registration(client, user_id):
    response = client.post("/monthly-expenses/", headers=headers(user_id), json={
        "name": "Kos", "total_amount": "1500000", "month": 5, "year": 2026
    })
    assert response.status_code == 201
    assert response.json()["month"] == 5

    duplicate = client.post("/monthly-expenses/", headers=headers(user_id), json={
        "name": "Kos", "total_amount": "1500000", "month": 5, "year": 2026
    })
    assert duplicate.status_code == 400


def test_onboarding_endpoint(client, user_id, bank_ids):
    response = client.post("/accounts/onboard", headers=headers(user_id), json={"bank_id": bank_ids[0]})
    assert response.status_code == 201
    assert response.json()["account_count"] == 1
    assert len(response.json()["new_account"]["allocations"]) == 3


def test_duplicate_registration_is_rejected(client, user_id):
    response = client.post("/users/", json={
        "email": "sari@example.com", "username": "sari_lain", "password": "rahasia123", "confirm_password": "rahasia123"
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_profile_advice_follows_account_count(client, user_id, bank_ids):
    add_account(client, user_id, bank_ids[0], "Kebutuhan", "0")
    add_account(client, user_id, bank_ids[1], "Tabungan", "0")

    profile = client.get(f"/users/{user_id}").json()

    assert profile["account_count"] == 2
    assert "3 akun lebih baik" in profile["advice"]


def test_income_endpoints(client, user_id, bank_ids):
    account_id = add_account(client, user_id, bank_ids[0], "Kebutuhan", "0").json()["new_account"]["id"]
    client.put("/accounts/balance", headers=headers(user_id), json={
        "account_id": account_id, "type": "Kebutuhan", "balance_per_type": "300000"
    })
    kebutuhan_id = next(
        a["id"] for a in client.get("/allocations/", headers=headers(user_id)).json() if a["type"] == "Kebutuhan"
    )

    income = client.post("/incomes/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "amount": "150000", "income_source": "Uang Saku"
    })
    assert income.status_code == 201
    assert Decimal(income.json()["new_allocation_balance"]) == Decimal("450000")
    assert income.json()["budget_tracking"]["error"] is None

    totals = client.get("/allocations/totals", headers=headers(user_id)).json()
    assert Decimal(totals["Kebutuhan"]) == Decimal("450000")

    listing = client.get("/incomes/", headers=headers(user_id)).json()
    assert [(i["income_source"], Decimal(i["amount"])) for i in listing] == [("Uang Saku", Decimal("150000"))]

    bad_source = client.post("/incomes/", headers=headers(user_id), json={
        "account_allocation_id": kebutuhan_id, "amount": "1", "income_source": "Lotre"
    })
    assert bad_source.status_code == 422

    missing = client.post("/incomes/", headers=headers(user_id), json={
        "account_allocation_id": 9999, "amount": "1"
    })
    assert missing.status_code == 404
