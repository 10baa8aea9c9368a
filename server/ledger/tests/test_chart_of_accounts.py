from datetime import date

import pytest

from ledger.accounting import chart
from ledger.accounting.exceptions import (
    AccountInUseError,
    DuplicateAccountError,
    InvalidAccountCodeError,
    LedgerValidationError,
)
from ledger.models import Account
from ledger.seed_chart_of_accounts import STANDARD_ACCOUNTS
from ledger.tests.factories import create_accounts, credit, debit, make_draft, make_posted


def test_register_and_lookup(db):
    account = chart.register_account(db, 1, code="311", analytic="001", name="Odberatelia tuzemsko", type="asset")
    db.commit()

    result = chart.lookup_account(db, 1, "311", "001")
    assert isinstance(result, chart.Found)
    assert result.account.id == account.id
    assert result.account.full_code == "311.001"

    missing = chart.lookup_account(db, 1, "311")
    assert isinstance(missing, chart.NotFound)
    assert missing.label == "Unknown account 311"


def test_duplicate_account_rejected(db):
    chart.register_account(db, 1, code="221", name="Bankove ucty", type="asset")
    db.commit()
    with pytest.raises(DuplicateAccountError):
        chart.register_account(db, 1, code="221", name="Banka 2", type="asset")


def test_duplicate_caught_on_insert_keeps_pending_work(db, monkeypatch):
    chart.register_account(db, 1, code="221", name="Bankove ucty", type="asset")
    db.commit()
    pending = chart.register_account(db, 1, code="211", name="Pokladnica", type="asset")

    # Another request inserted the same code after the existence check ran.
    monkeypatch.setattr(chart, "_existing_account_id", lambda *args: None)
    with pytest.raises(DuplicateAccountError):
        chart.register_account(db, 1, code="221", name="Banka 2", type="asset")

    db.commit()
    assert pending.id is not None
    assert sorted(account.code for account in db.query(Account).all()) == ["211", "221"]


def test_same_code_allowed_in_another_company(db):
    chart.register_account(db, 1, code="221", name="Bankove ucty", type="asset")
    chart.register_account(db, 2, code="221", name="Bankove ucty", type="asset")
    db.commit()
    assert db.query(Account).filter(Account.code == "221").count() == 2


@pytest.mark.parametrize(
    "code,analytic",
    [("31", ""), ("3111", ""), ("31A", ""), ("311", "1234567"), ("311", "00-1")],
)
def test_invalid_codes_rejected(db, code, analytic):
    with pytest.raises(InvalidAccountCodeError):
        chart.register_account(db, 1, code=code, analytic=analytic, name="X", type="asset")


def test_invalid_type_rejected(db):
    with pytest.raises(LedgerValidationError):
        chart.register_account(db, 1, code="311", name="X", type="equity")


def test_disabled_account_hidden_from_selection_but_kept_for_history(db):
    accounts = create_accounts(db)
    entry = make_posted(db, [debit(accounts["311"], "100.00"), credit(accounts["602"], "100.00")])

    chart.disable_account(db, 1, accounts["602"].id)
    db.commit()

    assert isinstance(chart.lookup_account(db, 1, "602"), chart.NotFound)
    assert isinstance(chart.lookup_account(db, 1, "602", include_inactive=True), chart.Found)
    assert "602" not in chart.ChartSnapshot.load(db, 1)
    db.refresh(entry)
    assert entry.lines[1].account_id == accounts["602"].id

    chart.enable_account(db, 1, accounts["602"].id)
    db.commit()
    assert isinstance(chart.lookup_account(db, 1, "602"), chart.Found)


def test_rename_allowed_but_code_change_refused_once_posted(db):
    accounts = create_accounts(db)
    make_posted(db, [debit(accounts["311"], "100.00"), credit(accounts["602"], "100.00")])

    renamed = chart.update_account(db, 1, accounts["602"].id, {"name": "Trzby za sluzby"})
    db.commit()
    assert renamed.name == "Trzby za sluzby"

    with pytest.raises(AccountInUseError):
        chart.update_account(db, 1, accounts["602"].id, {"code": "604"})
    with pytest.raises(AccountInUseError):
        chart.update_account(db, 1, accounts["602"].id, {"type": "liability"})


def test_code_change_allowed_while_only_drafts_reference_account(db):
    accounts = create_accounts(db)
    make_draft(db, [debit(accounts["518"], "10.00")])

    updated = chart.update_account(db, 1, accounts["518"].id, {"code": "512", "analytic": "01"})
    db.commit()
    assert updated.full_code == "512.01"


def test_delete_refused_when_referenced(db):
    accounts = create_accounts(db)
    make_draft(db, [debit(accounts["518"], "10.00")], entry_date=date(2024, 5, 1))

    with pytest.raises(AccountInUseError):
        chart.delete_account(db, 1, accounts["518"].id)

    chart.delete_account(db, 1, accounts["343"].id)
    db.commit()
    assert db.get(Account, accounts["343"].id) is None


def test_list_filters(db):
    create_accounts(db)
    assert [a.code for a in chart.list_accounts(db, 1, class_prefix="3")] == ["311", "321", "343"]
    assert [a.code for a in chart.list_accounts(db, 1, type="asset")] == ["221", "311"]
    assert [a.code for a in chart.list_accounts(db, 1, q="sluz")] == ["518", "602"]
    assert chart.list_accounts(db, 2) == []


def test_seed_standard_chart_is_idempotent(db):
    inserted, updated = chart.seed_standard_chart(db, 1)
    db.commit()
    assert inserted == len(STANDARD_ACCOUNTS)
    assert updated == 0

    inserted, updated = chart.seed_standard_chart(db, 1)
    db.commit()
    assert inserted == 0
    assert db.query(Account).filter(Account.company_id == 1).count() == len(STANDARD_ACCOUNTS)

    off_balance = db.query(Account).filter(Account.company_id == 1, Account.is_off_balance.is_(True)).all()
    assert off_balance
    assert all(account.code.startswith("7") for account in off_balance)


def test_chart_api_crud(client):
    response = client.post(
        "/api/chart-of-accounts",
        json={"code": "311", "name": "Odberatelia", "type": "asset"},
    )
    assert response.status_code == 201
    account = response.json()
    assert account["full_code"] == "311"
    assert account["is_active"] is True

    duplicate = client.post("/api/chart-of-accounts", json={"code": "311", "name": "Again", "type": "asset"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "DUPLICATE_ACCOUNT"

    bad_code = client.post("/api/chart-of-accounts", json={"code": "3A1", "name": "Bad", "type": "asset"})
    assert bad_code.status_code == 400
    assert bad_code.json()["detail"]["code"] == "INVALID_ACCOUNT_CODE"

    patched = client.patch(f"/api/chart-of-accounts/{account['id']}", json={"name": "Odberatelia SR"})
    assert patched.status_code == 200
    assert patched.json()["name"] == "Odberatelia SR"

    disabled = client.post(f"/api/chart-of-accounts/{account['id']}/disable")
    assert disabled.json()["is_active"] is False

    lookup = client.get("/api/chart-of-accounts/lookup", params={"code": "311"})
    assert lookup.json() == {"found": False, "label": "Unknown account 311", "account": None}

    enabled = client.post(f"/api/chart-of-accounts/{account['id']}/enable")
    assert enabled.json()["is_active"] is True
    lookup = client.get("/api/chart-of-accounts/lookup", params={"code": "311"})
    assert lookup.json()["found"] is True

    listed = client.get("/api/chart-of-accounts", params={"type": "asset"})
    assert [row["code"] for row in listed.json()] == ["311"]

    analytic = client.post(
        "/api/chart-of-accounts",
        json={"code": "311", "analytic": "100", "name": "Odberatelia EU", "type": "asset"},
    )
    assert analytic.status_code == 201
    by_full_code = client.get("/api/chart-of-accounts/lookup", params={"code": "311.100"})
    assert by_full_code.json()["label"] == "311.100 Odberatelia EU"

    deleted = client.delete(f"/api/chart-of-accounts/{account['id']}")
    assert deleted.status_code == 200
    missing = client.get(f"/api/chart-of-accounts/{account['id']}")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "ACCOUNT_NOT_FOUND"


def test_chart_api_seed(client):
    response = client.post("/api/chart-of-accounts/seed")
    assert response.status_code == 200
    assert response.json()["inserted"] == len(STANDARD_ACCOUNTS)

    listed = client.get("/api/chart-of-accounts", params={"class_prefix": "6"})
    assert {row["code"] for row in listed.json()} >= {"602", "604"}
