from datetime import timedelta
from hireveno.database.database import TutoringSession, Transaction, TransactionType, SessionStatus, User, utcnow
from hireveno.services.notifications import notification_relay
from conftest import auth_headers, make_session

def booking(tutor, duration=60):
    return {
        "student_id": tutor.id,
        "duration": duration,
        "scheduled_at": (utcnow() + timedelta(days=1)).isoformat(),
        "description": "Biology revision",
    }

def test_checkout_returns_escrow_config(client, aspirant, tutor):
    response = client.post("/payments/checkout", json=booking(tutor), headers=auth_headers(aspirant))
    assert response.status_code == 200
    data = response.json()
    assert data["amount"] == 1500
    assert data["currency"] == "NGN"
    assert data["public_key"] == "FLWPUBK_TEST-public"
    assert data["tx_ref"].startswith("session_")
    assert data["tx_ref"].endswith(aspirant.id)
    assert data["meta"]["rave_escrow_tx"] == "1"

def test_checkout_writes_nothing(client, db, aspirant, tutor):
    client.post("/payments/checkout", json=booking(tutor), headers=auth_headers(aspirant))
    assert db.query(TutoringSession).count() == 0

def test_wallet_payment_books_and_debits(client, db, aspirant, tutor):
    response = client.post("/payments/wallet", json=booking(tutor, 60), headers=auth_headers(aspirant))
    assert response.status_code == 200
    data = response.json()
    assert data["session"]["status"] == "confirmed"
    assert data["session"]["amount"] == 150000
    assert data["session"]["payment_reference"].startswith("wallet_")
    assert data["transaction"]["type"] == "payment"
    assert data["transaction"]["amount"] == 150000

    db.expire_all()
    assert db.query(User).filter(User.id == aspirant.id).first().wallet_balance == 0
    assert db.query(Transaction).filter(Transaction.type == TransactionType.PAYMENT).count() == 1

def test_wallet_payment_insufficient_balance(client, db, aspirant, tutor):
    response = client.post("/payments/wallet", json=booking(tutor, 90), headers=auth_headers(aspirant))
    assert response.status_code == 402
    detail = response.json()["detail"]
    assert detail["message"] == "Insufficient wallet balance"
    assert detail["amount"] == 225000
    assert detail["shortfall"] == 75000

    db.expire_all()
    assert db.query(TutoringSession).count() == 0
    assert db.query(Transaction).count() == 0
    assert db.query(User).filter(User.id == aspirant.id).first().wallet_balance == 150000

def test_wallet_payment_notifies_tutor(client, aspirant, tutor):
    client.post("/payments/wallet", json=booking(tutor), headers=auth_headers(aspirant))
    notifications = notification_relay.drain(tutor.id)
    assert [n.message for n in notifications] == ["New session booked by Ada Learner"]
    assert notifications[0].link == "/dashboard"

def test_tutor_cannot_pay(client, tutor, banked_tutor):
    response = client.post("/payments/wallet", json=booking(banked_tutor), headers=auth_headers(tutor))
    assert response.status_code == 403

def gateway_confirm(tutor, status="successful", flw_ref="FLW-MOCK-abc", tx_ref="session_1700000000000_x"):
    return {
        "booking": booking(tutor),
        "callback": {"status": status, "tx_ref": tx_ref, "flw_ref": flw_ref, "transaction_id": 98765},
    }

def test_gateway_payment_success(client, db, aspirant, tutor):
    response = client.post("/payments/gateway/confirm", json=gateway_confirm(tutor), headers=auth_headers(aspirant))
    assert response.status_code == 200
    data = response.json()
    assert data["session"]["status"] == "confirmed"
    assert data["session"]["payment_status"] == "completed"
    assert data["session"]["payment_reference"] == "FLW-MOCK-abc"
    assert data["transaction"]["reference"] == "FLW-MOCK-abc"

    db.expire_all()
    # Gateway payments leave the wallet alone
    assert db.query(User).filter(User.id == aspirant.id).first().wallet_balance == 150000

def test_gateway_payment_failure_writes_nothing(client, db, aspirant, tutor):
    response = client.post("/payments/gateway/confirm", json=gateway_confirm(tutor, status="cancelled"),
                           headers=auth_headers(aspirant))
    assert response.status_code == 402
    assert db.query(TutoringSession).count() == 0
    assert db.query(Transaction).count() == 0

def test_replayed_gateway_callback_books_once(client, db, aspirant, tutor):
    first = client.post("/payments/gateway/confirm", json=gateway_confirm(tutor), headers=auth_headers(aspirant))
    second = client.post("/payments/gateway/confirm", json=gateway_confirm(tutor), headers=auth_headers(aspirant))
    assert second.status_code == 200
    assert second.json()["session"]["id"] == first.json()["session"]["id"]
    assert db.query(TutoringSession).count() == 1
    assert db.query(Transaction).count() == 1

def test_webhook_requires_hash(client):
    response = client.post("/payments/webhook", json={"event": "charge.completed", "data": {}},
                           headers={"verif-hash": "wrong"})
    assert response.status_code == 401

def test_webhook_reconciles_by_tx_ref(client, db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, payment_status=None, payment_reference=None)
    session.tx_ref = "session_1700000000000_" + aspirant.id
    db.commit()

    payload = {"event": "charge.completed",
               "data": {"id": 555, "status": "successful", "tx_ref": session.tx_ref, "flw_ref": "FLW-WEBHOOK-1"}}
    response = client.post("/payments/webhook", json=payload, headers={"verif-hash": "test-webhook-hash"})
    assert response.status_code == 200
    assert response.json() == {"received": True, "updated": True}

    db.refresh(session)
    assert session.payment_status == "completed"
    assert session.payment_reference == "FLW-WEBHOOK-1"

def test_webhook_ignores_other_events(client):
    payload = {"event": "transfer.completed", "data": {"status": "successful", "tx_ref": "session_1"}}
    response = client.post("/payments/webhook", json=payload, headers={"verif-hash": "test-webhook-hash"})
    assert response.json() == {"received": True, "updated": False}

def test_webhook_never_reopens_settled_session(client, db, aspirant, tutor):
    session = make_session(db, aspirant, tutor, status=SessionStatus.COMPLETED, payment_status="settled")
    session.tx_ref = "session_1700000000001_" + aspirant.id
    db.commit()

    payload = {"event": "charge.completed", "data": {"status": "successful", "tx_ref": session.tx_ref}}
    response = client.post("/payments/webhook", json=payload, headers={"verif-hash": "test-webhook-hash"})
    assert response.json()["updated"] is False
    db.refresh(session)
    assert session.payment_status == "settled"
