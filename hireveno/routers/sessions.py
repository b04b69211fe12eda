"""
Session router: a user's sessions, the tutor's accept/decline/complete actions
and the chat countdown polled by the chat page.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List
from hireveno.auth_tools import get_current_user, student_only
from hireveno.database.database import get_db, User, SessionStatus, TutoringSession
from hireveno.schemas.session_schema import SessionResponse, ChatTimerResponse
from hireveno.services.sessions import get_session_for_user, list_user_sessions, transition
from hireveno.services.chat import timer_state

router = APIRouter(prefix='/sessions')

def _tutor_session(db: Session, sessionID: str, tutor: User) -> TutoringSession:
    session = get_session_for_user(db, sessionID, tutor)
    if session.student_id != tutor.id:
        raise HTTPException(status_code=403, detail="Only the tutor of this session can do this")
    return session

@router.get('/', response_model=List[SessionResponse])
def get_sessions(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Sessions where the user is the learner or the tutor, newest first."""
    return list_user_sessions(db, current_user)

@router.get('/{sessionID}', response_model=SessionResponse)
def get_session(sessionID: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_session_for_user(db, sessionID, current_user)

@router.post('/{sessionID}/accept', response_model=SessionResponse)
def accept_session(request: Request, sessionID: str, current_user: User = Depends(student_only),
                   db: Session = Depends(get_db)):
    """
    Tutor accepts a pending session.

    Raises:
        HTTPException: If the caller is not this session's tutor (403).
        HTTPException: If the session is not pending anymore (409).
    """
    session = _tutor_session(db, sessionID, current_user)
    return transition(db, session, SessionStatus.CONFIRMED)

@router.post('/{sessionID}/decline', response_model=SessionResponse)
def decline_session(request: Request, sessionID: str, current_user: User = Depends(student_only),
                    db: Session = Depends(get_db)):
    """Tutor declines (cancels) a pending or confirmed session."""
    session = _tutor_session(db, sessionID, current_user)
    return transition(db, session, SessionStatus.CANCELLED)

@router.post('/{sessionID}/complete', response_model=SessionResponse)
def complete_session(request: Request, sessionID: str, current_user: User = Depends(student_only),
                     db: Session = Depends(get_db)):
    session = _tutor_session(db, sessionID, current_user)
    return transition(db, session, SessionStatus.COMPLETED)

@router.get('/{sessionID}/chat/timer', response_model=ChatTimerResponse)
def get_chat_timer(sessionID: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Countdown of the session's chat window, polled once per second.

    The first poll after the window closes completes the session; learners
    who have not reviewed yet get review_required=True.
    """
    session = get_session_for_user(db, sessionID, current_user)
    state = timer_state(db, session, current_user)
    return {
        "session_id": session.id,
        "phase": state.phase.value,
        "seconds_until_start": state.seconds_until_start,
        "seconds_remaining": state.seconds_remaining,
        "can_send": state.can_send,
        "status": session.status,
        "review_required": state.review_required,
    }
