"""
Reviews and escrow settlement.

A learner's review of a finished session releases the held payment: the tutor gets
70% (bank transfer when payout details are on file, wallet credit otherwise) and the
platform keeps the rest. The review is committed before settlement starts, a failed
payout never takes the review back with it.

Settlement is claimed with a conditional update on payment_status, so a repeated
review, an admin retry racing a learner, or a double click cannot pay out twice.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Tuple
from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from hireveno.config import get_settings
from hireveno.database.database import (
    Review, SessionStatus, Transaction, TransactionStatus, TransactionType, TutoringSession, User, utcnow,
    PAYMENT_SETTLING, PAYMENT_SETTLED, PAYMENT_SETTLEMENT_FAILED
)
from hireveno.services.flutterwave import FlutterwaveClient, FlutterwaveError
from hireveno.services.notifications import publish_status_change
from hireveno.services.payments import epoch_ms
from hireveno.services.sessions import session_end, complete_if_ended
from hireveno.logger import logger, audit_logger

SETTLED = "settled"
ALREADY_SETTLED = "already_settled"
IN_PROGRESS = "in_progress"
FAILED = "failed"

@dataclass
class SettlementResult:
    session_id: str
    status: str
    payout: int = 0
    platform_fee: int = 0
    destination: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

def split_amount(amount: int, payout_ratio: float) -> Tuple[int, int]:
    """Tutor payout (floored to whole kobo) and the platform's share."""
    payout = int((Decimal(amount) * Decimal(str(payout_ratio))).to_integral_value(rounding=ROUND_FLOOR))
    return payout, amount - payout

def _is_gateway_payment(session: TutoringSession) -> bool:
    return bool(session.payment_reference) and not session.payment_reference.startswith("wallet_")

def _claim(db: Session, session: TutoringSession) -> bool:
    rows = db.query(TutoringSession).filter(
        TutoringSession.id == session.id,
        TutoringSession.status.in_([SessionStatus.CONFIRMED, SessionStatus.COMPLETED]),
        or_(TutoringSession.payment_status.is_(None),
            TutoringSession.payment_status.notin_([PAYMENT_SETTLING, PAYMENT_SETTLED]))
    ).update({TutoringSession.payment_status: PAYMENT_SETTLING}, synchronize_session=False)
    db.commit()
    db.refresh(session)
    return bool(rows)

def _mark_failed(db: Session, session: TutoringSession, error: str):
    db.query(TutoringSession).filter(
        TutoringSession.id == session.id,
        TutoringSession.payment_status == PAYMENT_SETTLING
    ).update({TutoringSession.payment_status: PAYMENT_SETTLEMENT_FAILED}, synchronize_session=False)
    db.commit()
    db.refresh(session)
    logger.error(f"Settlement of session {session.id} failed: {error}")
    audit_logger.log_event("settlement.failed", session.student_id, {"session_id": session.id, "error": error})

def settle_session(db: Session, session: TutoringSession, gateway: FlutterwaveClient) -> SettlementResult:
    """
    Release a session's escrow to its tutor.

    Returns a SettlementResult; gateway and database failures are reported there
    (status "failed", payment_status "settlement_failed") so the caller can retry later.
    """
    if session.status not in (SessionStatus.CONFIRMED, SessionStatus.COMPLETED):
        raise HTTPException(status_code=400, detail=f"Cannot settle a {session.status.value} session")

    if not _claim(db, session):
        status = ALREADY_SETTLED if session.payment_status == PAYMENT_SETTLED else IN_PROGRESS
        logger.info(f"Settlement of session {session.id} skipped: {status}")
        return SettlementResult(session_id=session.id, status=status)

    settings = get_settings()
    payout, platform_fee = split_amount(session.amount, settings.tutor_payout_ratio)
    tutor: User = session.tutor
    narration = f"Session payout - {session.description or 'Tutoring session'}"
    transfer_reference = None

    try:
        if _is_gateway_payment(session) and not session.escrow_released:
            gateway.settle_escrow(session.payment_reference)
            # Recorded on its own so a retry after a failed payout does not release again
            db.query(TutoringSession).filter(TutoringSession.id == session.id).update(
                {TutoringSession.escrow_released: True}, synchronize_session=False)
            db.commit()
            audit_logger.log_event("settlement.escrow_released", session.student_id, {
                "session_id": session.id, "payment_reference": session.payment_reference,
            })

        if tutor.has_bank_details:
            transfer_reference = f"payout_{session.id}_{epoch_ms()}"
            transfer = gateway.create_transfer(
                account_bank=tutor.bank_code,
                account_number=tutor.account_number,
                amount=payout / 100,
                reference=transfer_reference,
                beneficiary_name=tutor.account_name,
                narration=narration,
            )
            reference = (transfer.get("data") or {}).get("reference") or transfer_reference
            destination = "bank"
        else:
            reference = f"wallet_{session.id}"
            destination = "wallet"
            db.query(User).filter(User.id == tutor.id).update(
                {User.wallet_balance: User.wallet_balance + payout}, synchronize_session=False)

        db.add(Transaction(
            user_id=tutor.id,
            session_id=session.id,
            amount=payout,
            type=TransactionType.EARNING,
            status=TransactionStatus.COMPLETED,
            reference=reference,
            description=narration,
        ))
        old_status = session.status
        db.query(TutoringSession).filter(TutoringSession.id == session.id).update(
            {TutoringSession.payment_status: PAYMENT_SETTLED,
             TutoringSession.status: SessionStatus.COMPLETED,
             TutoringSession.updated_at: utcnow()},
            synchronize_session=False)
        db.commit()
    except FlutterwaveError as e:
        db.rollback()
        _mark_failed(db, session, str(e))
        return SettlementResult(session_id=session.id, status=FAILED, payout=payout,
                                platform_fee=platform_fee, error=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        if transfer_reference:
            # Money already left through the gateway, the ledger row is missing
            logger.critical(f"Transfer {transfer_reference} sent but not recorded for session {session.id}")
        _mark_failed(db, session, f"{str(e)} (transfer reference: {transfer_reference})")
        return SettlementResult(session_id=session.id, status=FAILED, payout=payout,
                                platform_fee=platform_fee, error="Could not record the payout")

    db.refresh(session)
    logger.info(f"Session {session.id} settled: {payout} to {destination}, platform fee {platform_fee}")
    audit_logger.log_event("settlement.completed", tutor.id, {
        "session_id": session.id, "amount": session.amount, "payout": payout,
        "platform_fee": platform_fee, "destination": destination, "reference": reference,
    })
    if old_status != SessionStatus.COMPLETED:
        publish_status_change(session, old_status.value, SessionStatus.COMPLETED.value)

    return SettlementResult(session_id=session.id, status=SETTLED, payout=payout, platform_fee=platform_fee,
                            destination=destination, reference=reference)

def submit_review(db: Session, session: TutoringSession, reviewer: User, rating: int, comment: Optional[str],
                  gateway: FlutterwaveClient, now: Optional[datetime] = None) -> Tuple[Review, Optional[SettlementResult]]:
    """
    Record a participant's review. A learner's review also settles the session.

    Raises:
        HTTPException(400): bad rating, or the session is not finished
        HTTPException(403): reviewer is not a participant
        HTTPException(409): the reviewer already reviewed this session
    """
    now = now or utcnow()
    if rating is None or not 1 <= rating <= 5:
        raise HTTPException(status_code=400, detail="Please provide a rating between 1 and 5")
    if not session.is_party(reviewer.id):
        raise HTTPException(status_code=403, detail="Only session participants can review it")

    if session.status in (SessionStatus.PENDING, SessionStatus.CANCELLED):
        raise HTTPException(status_code=400, detail=f"Cannot review a {session.status.value} session")
    if session.status == SessionStatus.CONFIRMED:
        if now < session_end(session):
            raise HTTPException(status_code=400, detail="Session has not ended yet")
        complete_if_ended(db, session, now)

    existing = db.query(Review).filter(Review.session_id == session.id, Review.reviewer_id == reviewer.id).first()
    if existing:
        raise HTTPException(status_code=409, detail="You have already reviewed this session")

    review = Review(session_id=session.id, reviewer_id=reviewer.id, rating=rating, comment=comment)
    try:
        db.add(review)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="You have already reviewed this session")
    db.refresh(review)

    settlement = None
    if reviewer.id == session.client_id:
        try:
            settlement = settle_session(db, session, gateway)
        except Exception as e:
            db.rollback()
            logger.error(f"Escrow settlement error for session {session.id}: {str(e)}")
            settlement = SettlementResult(session_id=session.id, status=FAILED, error=str(e))
    return review, settlement

def tutor_rating_summary(db: Session, tutor_id: str):
    """Average rating and reviews written by learners about a tutor."""
    reviews = db.query(Review).join(TutoringSession, Review.session_id == TutoringSession.id).filter(
        TutoringSession.student_id == tutor_id,
        Review.reviewer_id == TutoringSession.client_id
    ).order_by(Review.created_at.desc()).all()
    average = round(sum(r.rating for r in reviews) / len(reviews), 2) if reviews else None
    return average, reviews
