"""
Session chat: time-gated sending, reply threading, soft delete and message reports.

The chat window is open between scheduled_at and scheduled_at + duration. Clients poll
the timer once per second; the first poll after the window closes completes the session.
"""
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from hireveno.database.database import (
    ChatMessage, Report, Review, ReportStatus, SessionStatus, TutoringSession, User, UserRole, is_valid_uuid, utcnow
)
from hireveno.services.content_filter import get_content_filter
from hireveno.services.notifications import event_bus, Event, MESSAGE_CREATED
from hireveno.services.sessions import session_end, complete_if_ended
from hireveno.logger import logger

DELETED_MESSAGE = "[Message deleted]"

class ChatPhase(enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ENDED = "ended"

@dataclass
class TimerState:
    phase: ChatPhase
    seconds_until_start: int
    seconds_remaining: int
    review_required: bool

    @property
    def can_send(self) -> bool:
        return self.phase == ChatPhase.ACTIVE

def chat_phase(session: TutoringSession, now: datetime) -> ChatPhase:
    if now < session.scheduled_at:
        return ChatPhase.NOT_STARTED
    if now < session_end(session):
        return ChatPhase.ACTIVE
    return ChatPhase.ENDED

def timer_state(db: Session, session: TutoringSession, user: User, now: Optional[datetime] = None) -> TimerState:
    """
    One countdown tick. Once the window has closed the session is completed
    (at most once, see complete_if_ended) and the learner is asked for a review.
    """
    now = now or utcnow()
    phase = chat_phase(session, now)
    seconds_until_start = max(0, int((session.scheduled_at - now).total_seconds()))
    seconds_remaining = max(0, int((session_end(session) - now).total_seconds())) if phase != ChatPhase.NOT_STARTED else 0

    review_required = False
    if phase == ChatPhase.ENDED:
        complete_if_ended(db, session, now)
        if user.id == session.client_id and session.status == SessionStatus.COMPLETED:
            already_reviewed = db.query(Review).filter(
                Review.session_id == session.id,
                Review.reviewer_id == user.id
            ).first()
            review_required = already_reviewed is None

    return TimerState(phase=phase, seconds_until_start=seconds_until_start,
                      seconds_remaining=seconds_remaining, review_required=review_required)

def _require_party(session: TutoringSession, user: User):
    if not session.is_party(user.id):
        raise HTTPException(status_code=403, detail="Only session participants can use this chat")

def send_message(db: Session, session: TutoringSession, sender: User, text: str,
                 replied_to: Optional[str] = None, now: Optional[datetime] = None) -> ChatMessage:
    """
    Send a chat message.

    Raises:
        HTTPException(403): not a participant, or the chat window is not open
        HTTPException(400): the content filter rejected the text, or a bad reply target
        HTTPException(503): the content filter could not load its keywords
    """
    now = now or utcnow()
    _require_party(session, sender)

    if session.status in (SessionStatus.PENDING, SessionStatus.CANCELLED):
        raise HTTPException(status_code=403, detail=f"Chat is not available for a {session.status.value} session")

    phase = chat_phase(session, now)
    if phase == ChatPhase.NOT_STARTED:
        raise HTTPException(status_code=403, detail="Session has not started yet")
    if phase == ChatPhase.ENDED:
        complete_if_ended(db, session, now)
        raise HTTPException(status_code=403, detail="Session has ended")

    if replied_to:
        parent = db.query(ChatMessage).filter(ChatMessage.id == replied_to).first()
        if not parent or parent.session_id != session.id:
            raise HTTPException(status_code=400, detail="Replied message does not belong to this session")

    result = get_content_filter(db).is_message_allowed(text)
    if not result.allowed:
        logger.info(f"Blocked message from {sender.id} in session {session.id}: {result.reason}")
        raise HTTPException(status_code=400, detail=result.reason or "Message not allowed")

    message = ChatMessage(
        session_id=session.id,
        sender_id=sender.id,
        message=text,
        replied_to=replied_to,
        created_at=now,
    )
    try:
        db.add(message)
        db.commit()
        db.refresh(message)
    except Exception as e:
        logger.error(f"Error sending message in session {session.id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="An error occurred while sending message")

    event_bus.publish(Event(
        name=MESSAGE_CREATED,
        session_id=session.id,
        client_id=session.client_id,
        student_id=session.student_id,
        actor_id=sender.id,
        actor_name=sender.name,
    ))
    return message

def list_messages(db: Session, session: TutoringSession, user: User) -> List[ChatMessage]:
    if user.role != UserRole.ADMIN:
        _require_party(session, user)
    return db.query(ChatMessage).filter(
        ChatMessage.session_id == session.id
    ).order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()

def _get_message(db: Session, message_id: str) -> ChatMessage:
    if not is_valid_uuid(message_id):
        raise HTTPException(status_code=400, detail="Invalid message ID format")
    message = db.query(ChatMessage).filter(ChatMessage.id == message_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message

def soft_delete_message(db: Session, message_id: str, user: User) -> ChatMessage:
    """Senders may delete their own messages. The row stays, its text is replaced."""
    message = _get_message(db, message_id)
    if message.sender_id != user.id:
        raise HTTPException(status_code=403, detail="You can only delete your own messages")

    message.message = DELETED_MESSAGE
    message.is_flagged = True
    db.commit()
    db.refresh(message)
    return message

def flag_message(db: Session, message_id: str, user: User, reason: str) -> Report:
    """The other participant reports a message for moderation. The message itself is untouched."""
    message = _get_message(db, message_id)
    session = db.query(TutoringSession).filter(TutoringSession.id == message.session_id).first()
    _require_party(session, user)
    if message.sender_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot flag your own message")

    report = Report(message_id=message.id, flagged_by=user.id, reason=reason or "Inappropriate content")
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info(f"Message {message.id} flagged by {user.id}")
    return report

def list_pending_reports(db: Session) -> List[Report]:
    return db.query(Report).filter(Report.status == ReportStatus.PENDING).order_by(Report.created_at.desc()).all()

def resolve_report(db: Session, report_id: str, status: ReportStatus, flag_content: bool = False,
                   flagged_content_reason: Optional[str] = None) -> Report:
    """Admin decision on a report. Resolving can also mark the message as flagged content."""
    if status == ReportStatus.PENDING:
        raise HTTPException(status_code=400, detail="A report can only be resolved or dismissed")
    report = db.query(Report).filter(Report.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")

    report.status = status
    if status == ReportStatus.RESOLVED and flag_content:
        report.message.is_flagged_content = True
        report.message.flagged_content_reason = flagged_content_reason or report.reason
    db.commit()
    db.refresh(report)
    return report
