"""
Session record manager: pricing, booking validation, creation and the status state machine.

Status only moves pending -> confirmed -> completed, or pending/confirmed -> cancelled.
Every transition is a conditional update on the expected current status so that two
writers (a tutor action and the timer, two timer ticks, ...) cannot both apply it.
"""
import asyncio
from datetime import datetime, timedelta
from typing import List, Optional
from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from hireveno.database.database import (
    TutoringSession, SessionStatus, User, UserRole, UserStatus, SessionLocal, is_valid_uuid, utcnow
)
from hireveno.services.notifications import event_bus, publish_status_change, Event, SESSION_CREATED
from hireveno.logger import logger

ALLOWED_DURATIONS = (30, 45, 60, 90, 120)

ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING: {SessionStatus.CONFIRMED, SessionStatus.CANCELLED},
    SessionStatus.CONFIRMED: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),
    SessionStatus.CANCELLED: set(),
}

def session_price(duration: int) -> int:
    """Price in major units (naira): 30 min -> 1000, 60 min -> 1500, otherwise 25 per minute."""
    if duration == 30:
        return 1000
    if duration == 60:
        return 1500
    return duration * 25

def session_amount(duration: int) -> int:
    """Price in minor units (kobo), the value stored on the session."""
    return session_price(duration) * 100

def session_end(session: TutoringSession) -> datetime:
    return session.scheduled_at + timedelta(minutes=session.duration)

def validate_booking(duration: int, scheduled_at: datetime, now: Optional[datetime] = None):
    """Reject a booking before anything is written."""
    now = now or utcnow()
    if duration not in ALLOWED_DURATIONS:
        raise HTTPException(status_code=400, detail=f"Duration must be one of {list(ALLOWED_DURATIONS)} minutes")
    if scheduled_at <= now:
        raise HTTPException(status_code=400, detail="Please select a future date and time")

def get_bookable_tutor(db: Session, client: User, student_id: str) -> User:
    """The tutor must be an active, badge-holding student other than the client."""
    tutor = User.get_by_id(db, student_id)
    if not tutor or tutor.role != UserRole.STUDENT:
        raise HTTPException(status_code=404, detail="Tutor not found")
    if not tutor.badge or tutor.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=400, detail="Tutor is not available for booking")
    if tutor.id == client.id:
        raise HTTPException(status_code=400, detail="You cannot book a session with yourself")
    return tutor

def create_session(
    db: Session,
    client: User,
    tutor: User,
    duration: int,
    scheduled_at: datetime,
    description: Optional[str] = None,
    status: SessionStatus = SessionStatus.PENDING,
    payment_status: Optional[str] = None,
    payment_reference: Optional[str] = None,
    tx_ref: Optional[str] = None,
) -> TutoringSession:
    """
    Add a session row to the current unit of work. The caller commits, so the
    payment flows can write the session and its transaction together.
    """
    session = TutoringSession(
        client_id=client.id,
        student_id=tutor.id,
        duration=duration,
        scheduled_at=scheduled_at,
        amount=session_amount(duration),
        status=status,
        payment_status=payment_status,
        payment_reference=payment_reference,
        tx_ref=tx_ref,
        description=description or f"{duration} minute tutoring session",
    )
    db.add(session)
    db.flush()
    return session

def publish_session_created(session: TutoringSession, client: User):
    event_bus.publish(Event(
        name=SESSION_CREATED,
        session_id=session.id,
        client_id=session.client_id,
        student_id=session.student_id,
        actor_id=client.id,
        actor_name=client.name,
    ))

def can_transition(old_status: SessionStatus, new_status: SessionStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS[old_status]

def transition(db: Session, session: TutoringSession, new_status: SessionStatus) -> TutoringSession:
    """
    Move a session to a new status.

    Raises:
        HTTPException(409): the transition is not allowed from the current status,
        or another writer changed the status first.
    """
    old_status = session.status
    if not can_transition(old_status, new_status):
        raise HTTPException(status_code=409,
                            detail=f"Cannot change session status from {old_status.value} to {new_status.value}")

    rows = db.query(TutoringSession).filter(
        TutoringSession.id == session.id,
        TutoringSession.status == old_status
    ).update({TutoringSession.status: new_status, TutoringSession.updated_at: utcnow()}, synchronize_session=False)

    if rows == 0:
        db.rollback()
        raise HTTPException(status_code=409, detail="Session status was changed by someone else, please reload")

    db.commit()
    db.refresh(session)
    logger.info(f"Session {session.id} moved from {old_status.value} to {new_status.value}")
    publish_status_change(session, old_status.value, new_status.value)
    return session

def complete_if_ended(db: Session, session: TutoringSession, now: Optional[datetime] = None) -> bool:
    """
    Complete a confirmed session whose time is up.
    Safe to call on every timer tick: only the call that flips the row returns True.
    """
    now = now or utcnow()
    if now < session_end(session):
        return False

    rows = db.query(TutoringSession).filter(
        TutoringSession.id == session.id,
        TutoringSession.status == SessionStatus.CONFIRMED
    ).update({TutoringSession.status: SessionStatus.COMPLETED, TutoringSession.updated_at: utcnow()},
             synchronize_session=False)
    db.commit()
    db.refresh(session)

    if rows:
        logger.info(f"Session {session.id} ended and was marked completed")
        publish_status_change(session, SessionStatus.CONFIRMED.value, SessionStatus.COMPLETED.value)
    return bool(rows)

def get_session_for_user(db: Session, session_id: str, user: User) -> TutoringSession:
    """Fetch a session the user is a party to (admins see every session)."""
    if not is_valid_uuid(session_id):
        raise HTTPException(status_code=400, detail="Invalid session ID format")
    session = db.query(TutoringSession).filter(TutoringSession.id == session_id).first()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    if user.role != UserRole.ADMIN and not session.is_party(user.id):
        raise HTTPException(status_code=403, detail="Access denied")
    return session

def list_user_sessions(db: Session, user: User) -> List[TutoringSession]:
    return db.query(TutoringSession).filter(
        or_(TutoringSession.client_id == user.id, TutoringSession.student_id == user.id)
    ).order_by(TutoringSession.scheduled_at.desc()).all()

def complete_ended_sessions(db: Session, now: Optional[datetime] = None) -> int:
    """Complete every confirmed session whose end time has passed. Returns how many were flipped."""
    now = now or utcnow()
    candidates = db.query(TutoringSession).filter(
        TutoringSession.status == SessionStatus.CONFIRMED,
        TutoringSession.scheduled_at <= now
    ).all()
    return sum(1 for session in candidates if complete_if_ended(db, session, now))

def _sweep_once() -> int:
    db = SessionLocal()
    try:
        return complete_ended_sessions(db)
    finally:
        db.close()

async def session_sweeper(interval_seconds: int):
    """Background loop completing ended sessions. Cancel the task to stop it."""
    logger.info(f"Session sweeper running every {interval_seconds}s")
    while True:
        try:
            completed = await asyncio.to_thread(_sweep_once)
            if completed:
                logger.info(f"Session sweeper completed {completed} session(s)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Session sweeper error: {str(e)}")
        await asyncio.sleep(interval_seconds)
