"""
Payment adapter. Two ways to pay for a booking, both ending in the same pair of rows:
a confirmed session and a completed "payment" transaction, written in one database
transaction so that neither exists without the other.

- gateway: the learner paid through the Flutterwave checkout modal, we record the result.
- wallet: the learner's wallet balance is debited in the same unit of work.
"""
import time
from datetime import datetime
from typing import Optional, Tuple
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from hireveno.config import Settings
from hireveno.database.database import (
    TutoringSession, SessionStatus, Transaction, TransactionType, TransactionStatus, User,
    PAYMENT_COMPLETED, PAYMENT_SETTLING, PAYMENT_SETTLED, PAYMENT_SETTLEMENT_FAILED
)
from hireveno.schemas.session_schema import BookingDetails
from hireveno.schemas.payment_schema import GatewayCallback, WebhookPayload
from hireveno.services.sessions import (
    validate_booking, get_bookable_tutor, create_session, session_amount, session_price, publish_session_created
)
from hireveno.logger import logger, audit_logger

SUCCESSFUL_CALLBACK_STATUSES = ("successful", "completed")

def epoch_ms() -> int:
    return int(time.time() * 1000)

def make_tx_ref(user: User) -> str:
    return f"session_{epoch_ms()}_{user.id}"

def build_checkout(client: User, booking: BookingDetails, settings: Settings, now: Optional[datetime] = None) -> dict:
    """Inline checkout configuration. Nothing is written until the callback is confirmed."""
    validate_booking(booking.duration, booking.scheduled_at, now)
    return {
        "public_key": settings.flutterwave_public_key,
        "tx_ref": make_tx_ref(client),
        "amount": session_price(booking.duration),
        "currency": settings.currency,
        "payment_options": "card,mobilemoney,ussd",
        "customer": {"email": client.email, "name": client.name},
        "customizations": {
            "title": "Tutoring Session Payment",
            "description": f"Payment for {booking.duration} minute tutoring session",
        },
        "meta": {
            "rave_escrow_tx": "1",
            "session_type": "tutoring",
            "duration": str(booking.duration),
        },
    }

def _payment_transaction(client: User, session: TutoringSession, reference: str, description: str) -> Transaction:
    return Transaction(
        user_id=client.id,
        session_id=session.id,
        amount=session.amount,
        type=TransactionType.PAYMENT,
        status=TransactionStatus.COMPLETED,
        reference=reference,
        description=description,
    )

def _existing_gateway_booking(db: Session, client: User, flw_ref: str) -> Optional[Tuple[TutoringSession, Transaction]]:
    session = db.query(TutoringSession).filter(TutoringSession.payment_reference == flw_ref).first()
    if not session:
        return None
    if session.client_id != client.id:
        raise HTTPException(status_code=409, detail="Payment reference already used")
    transaction = db.query(Transaction).filter(
        Transaction.session_id == session.id,
        Transaction.type == TransactionType.PAYMENT
    ).first()
    return session, transaction

def pay_with_gateway(db: Session, client: User, booking: BookingDetails, callback: GatewayCallback,
                     now: Optional[datetime] = None) -> Tuple[TutoringSession, Transaction]:
    """
    Record a booking paid through the checkout modal.

    Raises:
        HTTPException(402): the checkout did not succeed, nothing is written
        HTTPException(500): the records could not be written, nothing is kept
    """
    if callback.status.lower() not in SUCCESSFUL_CALLBACK_STATUSES:
        logger.info(f"Gateway payment {callback.tx_ref} by {client.id} ended with status {callback.status}")
        raise HTTPException(status_code=402, detail="Payment failed or was cancelled")
    if not callback.flw_ref:
        raise HTTPException(status_code=400, detail="Missing payment reference")

    # Replayed callback, the booking already exists
    existing = _existing_gateway_booking(db, client, callback.flw_ref)
    if existing:
        return existing

    validate_booking(booking.duration, booking.scheduled_at, now)
    tutor = get_bookable_tutor(db, client, booking.student_id)

    try:
        session = create_session(
            db, client, tutor, booking.duration, booking.scheduled_at, booking.description,
            status=SessionStatus.CONFIRMED,
            payment_status=PAYMENT_COMPLETED,
            payment_reference=callback.flw_ref,
            tx_ref=callback.tx_ref,
        )
        transaction = _payment_transaction(client, session, callback.flw_ref,
                                           f"Payment for {booking.duration} minute tutoring session")
        db.add(transaction)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error recording gateway payment {callback.flw_ref} for {client.id}: {str(e)}")
        audit_logger.log_event("payment.gateway.record_failed", client.id,
                               {"flw_ref": callback.flw_ref, "tx_ref": callback.tx_ref, "error": str(e)})
        raise HTTPException(status_code=500, detail="Failed to process payment. Please contact support.")

    db.refresh(session)
    db.refresh(transaction)
    audit_logger.log_event("payment.gateway", client.id,
                           {"session_id": session.id, "amount": session.amount, "reference": callback.flw_ref})
    publish_session_created(session, client)
    return session, transaction

def _insufficient_balance(balance: int, amount: int) -> HTTPException:
    return HTTPException(status_code=402, detail={
        "message": "Insufficient wallet balance",
        "balance": balance,
        "amount": amount,
        "shortfall": amount - balance,
    })

def pay_with_wallet(db: Session, client: User, booking: BookingDetails,
                    now: Optional[datetime] = None) -> Tuple[TutoringSession, Transaction]:
    """
    Book a session paid from the learner's wallet.

    The debit is a single conditional UPDATE (balance >= amount), so two concurrent
    bookings can never both spend the same money.

    Raises:
        HTTPException(402): balance is short, detail carries the shortfall; nothing is written
    """
    validate_booking(booking.duration, booking.scheduled_at, now)
    tutor = get_bookable_tutor(db, client, booking.student_id)
    amount = session_amount(booking.duration)

    db.refresh(client)
    if client.wallet_balance < amount:
        raise _insufficient_balance(client.wallet_balance, amount)

    reference = f"wallet_{epoch_ms()}"
    try:
        rows = db.query(User).filter(
            User.id == client.id,
            User.wallet_balance >= amount
        ).update({User.wallet_balance: User.wallet_balance - amount}, synchronize_session=False)
        if rows == 0:
            db.rollback()
            db.refresh(client)
            raise _insufficient_balance(client.wallet_balance, amount)

        session = create_session(
            db, client, tutor, booking.duration, booking.scheduled_at, booking.description,
            status=SessionStatus.CONFIRMED,
            payment_status=PAYMENT_COMPLETED,
            payment_reference=reference,
        )
        transaction = _payment_transaction(client, session, reference,
                                           f"Wallet payment for {booking.duration} minute tutoring session")
        db.add(transaction)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error processing wallet payment for {client.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process wallet payment. Please try again.")

    db.refresh(session)
    db.refresh(transaction)
    db.refresh(client)
    audit_logger.log_event("payment.wallet", client.id,
                           {"session_id": session.id, "amount": amount, "reference": reference,
                            "balance_after": client.wallet_balance})
    publish_session_created(session, client)
    return session, transaction

def reconcile_webhook(db: Session, payload: WebhookPayload) -> bool:
    """
    Apply a gateway charge notification to the matching session.
    Returns True when a session was updated.
    """
    if payload.event != "charge.completed":
        return False
    data = payload.data or {}
    if data.get("status") != "successful":
        return False

    tx_ref = str(data.get("tx_ref") or "")
    if not tx_ref.startswith("session_"):
        return False

    session = db.query(TutoringSession).filter(TutoringSession.tx_ref == tx_ref).first()
    if not session:
        logger.warning(f"Webhook for unknown tx_ref {tx_ref}")
        return False

    # Never move a session backwards out of settlement
    if session.payment_status in (PAYMENT_SETTLING, PAYMENT_SETTLED, PAYMENT_SETTLEMENT_FAILED):
        return False

    session.payment_status = PAYMENT_COMPLETED
    if data.get("flw_ref"):
        session.payment_reference = data["flw_ref"]
    db.commit()
    logger.info(f"Session payment confirmed by webhook: {tx_ref}")
    audit_logger.log_event("payment.webhook", session.client_id,
                           {"session_id": session.id, "tx_ref": tx_ref, "gateway_id": data.get("id")})
    return True
