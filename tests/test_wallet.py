import pytest
from hireveno.database.database import Transaction, TransactionType, User, Withdrawal, WithdrawalStatus
from conftest import auth_headers

BANK = {"bank_name": "Access Bank", "bank_code": "044", "account_number": "0690000031", "account_name": "Bisi Banked"}

@pytest.fixture
def rich_tutor(db, banked_tutor):
    banked_tutor.wallet_balance = 200000
    db.commit()
    return banked_tutor

def test_wallet_overview(client, aspirant):
    response = client.get("/wallet/", headers=auth_headers(aspirant))
    assert response.status_code == 200
    data = response.json()
    assert data["wallet_balance"] == 150000
    assert data["has_bank_details"] is False
    assert data["transactions"] == []

def test_save_bank_details(client, db, tutor):
    response = client.put("/wallet/bank", json=BANK, headers=auth_headers(tutor))
    assert response.status_code == 200
    assert response.json()["account_number"] == "0690000031"

def test_bank_details_need_ten_digit_account(client, tutor):
    response = client.put("/wallet/bank", json={**BANK, "account_number": "12345"}, headers=auth_headers(tutor))
    assert response.status_code == 422

def test_withdrawal_needs_bank_details(client, db, tutor):
    tutor.wallet_balance = 100000
    db.commit()
    response = client.post("/wallet/withdrawals", json={"amount": 60000}, headers=auth_headers(tutor))
    assert response.status_code == 400

def test_withdrawal_minimum(client, rich_tutor):
    response = client.post("/wallet/withdrawals", json={"amount": 49999}, headers=auth_headers(rich_tutor))
    assert response.status_code == 400
    assert "Minimum" in response.json()["detail"]

def test_withdrawal_above_balance(client, rich_tutor):
    response = client.post("/wallet/withdrawals", json={"amount": 200001}, headers=auth_headers(rich_tutor))
    assert response.status_code == 400

def test_learners_cannot_withdraw(client, aspirant):
    response = client.post("/wallet/withdrawals", json={"amount": 60000}, headers=auth_headers(aspirant))
    assert response.status_code == 403

def test_withdrawal_request_leaves_balance(client, db, rich_tutor):
    response = client.post("/wallet/withdrawals", json={"amount": 60000}, headers=auth_headers(rich_tutor))
    assert response.status_code == 200
    assert response.json()["status"] == "requested"
    db.expire_all()
    assert db.query(User).filter(User.id == rich_tutor.id).first().wallet_balance == 200000

def request_withdrawal(client, tutor, amount=60000):
    return client.post("/wallet/withdrawals", json={"amount": amount}, headers=auth_headers(tutor)).json()["id"]

def test_completed_withdrawal_debits_wallet(client, db, admin, rich_tutor):
    withdrawal_id = request_withdrawal(client, rich_tutor)

    response = client.patch(f"/admin/withdrawals/{withdrawal_id}", json={"status": "processing"},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    response = client.patch(f"/admin/withdrawals/{withdrawal_id}",
                            json={"status": "completed", "reference": "TRF-001"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    db.expire_all()
    assert db.query(User).filter(User.id == rich_tutor.id).first().wallet_balance == 140000
    ledger = db.query(Transaction).filter(Transaction.type == TransactionType.WITHDRAWAL).all()
    assert len(ledger) == 1
    assert ledger[0].amount == 60000
    assert ledger[0].reference == "TRF-001"

def test_withdrawal_cannot_skip_processing(client, admin, rich_tutor):
    withdrawal_id = request_withdrawal(client, rich_tutor)
    response = client.patch(f"/admin/withdrawals/{withdrawal_id}", json={"status": "completed"},
                            headers=auth_headers(admin))
    assert response.status_code == 409

def test_completion_fails_when_balance_is_gone(client, db, admin, rich_tutor):
    withdrawal_id = request_withdrawal(client, rich_tutor, amount=150000)
    client.patch(f"/admin/withdrawals/{withdrawal_id}", json={"status": "processing"}, headers=auth_headers(admin))

    db.query(User).filter(User.id == rich_tutor.id).update({User.wallet_balance: 100000})
    db.commit()

    response = client.patch(f"/admin/withdrawals/{withdrawal_id}", json={"status": "completed"},
                            headers=auth_headers(admin))
    assert response.status_code == 409
    db.expire_all()
    assert db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).first().status == WithdrawalStatus.PROCESSING
    assert db.query(User).filter(User.id == rich_tutor.id).first().wallet_balance == 100000

def test_admin_withdrawal_totals(client, admin, rich_tutor):
    first = request_withdrawal(client, rich_tutor, amount=60000)
    request_withdrawal(client, rich_tutor, amount=50000)
    client.patch(f"/admin/withdrawals/{first}", json={"status": "failed"}, headers=auth_headers(admin))

    data = client.get("/admin/withdrawals", headers=auth_headers(admin)).json()
    assert data["total_amount"] == 110000
    assert data["pending_amount"] == 50000
    assert data["completed_amount"] == 0

    requested = client.get("/admin/withdrawals?status=requested", headers=auth_headers(admin)).json()
    assert len(requested["withdrawals"]) == 1
