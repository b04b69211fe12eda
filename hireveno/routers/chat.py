"""
Chat router handling messaging inside a session.
Includes endpoints for reading and sending messages, deleting your own messages
and reporting the other participant's messages.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List
from hireveno.auth_tools import get_current_user
from hireveno.database.database import get_db, User
from hireveno.schemas.chat_schema import MessageCreate, MessageResponse, MessageDeletedResponse, FlagMessageRequest
from hireveno.schemas.report_schema import ReportResponse
from hireveno.services.chat import send_message, list_messages, soft_delete_message, flag_message
from hireveno.services.sessions import get_session_for_user
from hireveno.rate_limit import limiter

router = APIRouter(prefix='/chat')

@router.get('/{sessionID}/messages', response_model=List[MessageResponse])
def get_messages(sessionID: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Retrieve the messages of a session, oldest first.

    Args:
        sessionID (str): The ID of the session.
        current_user (User): The current authenticated user.
        db (Session): The database session.

    Raises:
        HTTPException: If the session ID format is invalid (400).
        HTTPException: If the session is not found (404).
        HTTPException: If the user is not a participant (403).

    Returns:
        List[ChatMessage]: The session's messages, deleted ones included with their placeholder text.
    """
    session = get_session_for_user(db, sessionID, current_user)
    return list_messages(db, session, current_user)

@router.post('/{sessionID}/messages', response_model=MessageResponse)
@limiter.limit("30/minute")
def post_message(request: Request, sessionID: str, data: MessageCreate,
                 current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Send a message in a session's chat.

    Only allowed while the chat window is open, and only for messages the
    content filter accepts (the rejection reason is returned as detail).

    Args:
        request (Request): The request object.
        sessionID (str): The ID of the session.
        data (MessageCreate): The message text and optional replied-to message ID.
        current_user (User): The current authenticated user.
        db (Session): The database session.

    Returns:
        ChatMessage: The stored message.
    """
    session = get_session_for_user(db, sessionID, current_user)
    return send_message(db, session, current_user, data.message, data.replied_to)

@router.delete('/messages/{messageID}', response_model=MessageDeletedResponse)
def delete_message(messageID: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Soft delete one of your own messages."""
    message = soft_delete_message(db, messageID, current_user)
    return {"message_id": message.id, "message": f"Message {message.id} deleted"}

@router.post('/messages/{messageID}/flag', response_model=ReportResponse)
def report_message(messageID: str, data: FlagMessageRequest, current_user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    """Report the other participant's message to the moderators."""
    return flag_message(db, messageID, current_user, data.reason)
