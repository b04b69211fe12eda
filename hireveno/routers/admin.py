"""
Admin router providing administrative endpoints for managing users, moderation reports,
appeals, withdrawals, the chat keyword list, sessions, quiz content and analytics.
Requires admin authentication for all endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
from hireveno.auth_tools import admin_only
from hireveno.config import get_settings
from hireveno.database.database import (
    get_db, User, UserRole, UserStatus, TutoringSession, SessionStatus, Transaction, TransactionType,
    TransactionStatus, ChatMessage, Appeal, AppealStatus, RestrictedContent, WithdrawalStatus, is_valid_uuid, utcnow
)
from hireveno.database.redis import redis_client
from hireveno.schemas.admin_schema import UserAdminUpdate, PlatformAnalyticsResponse, KeywordCreate, KeywordResponse
from hireveno.schemas.appeal_schema import AppealResponse, AppealRespond
from hireveno.schemas.report_schema import ReportDetailResponse, ReportResolve, ReportResponse
from hireveno.schemas.review_schema import SettlementResponse
from hireveno.schemas.session_schema import SessionResponse, SessionStatusUpdate
from hireveno.schemas.user_schema import UserResponse, DepartmentBase, DepartmentResponse
from hireveno.schemas.quiz_schema import QuestionCreate
from hireveno.schemas.wallet_schema import WithdrawalListResponse, WithdrawalResponse, WithdrawalStatusUpdate
from hireveno.services.chat import list_pending_reports, resolve_report
from hireveno.services.content_filter import invalidate_keyword_cache
from hireveno.services.flutterwave import FlutterwaveClient, get_payment_gateway
from hireveno.services.quiz import create_department, add_question
from hireveno.services.sessions import transition
from hireveno.services.settlement import settle_session, FAILED
from hireveno.services.wallet import list_withdrawals, update_withdrawal_status
from hireveno.utilities import get_user_by_id
from hireveno.rate_limit import limiter
from hireveno.logger import logger

router = APIRouter(prefix='/admin')
USE_REDIS = get_settings().use_redis
ANALYTICS_CACHE_KEY = "admin_analytics"

########################
### USER MANAGEMENT ####
########################

@router.get('/users', response_model=List[UserResponse])
def get_users(role: Optional[UserRole] = None, status: Optional[UserStatus] = None,
              db: Session = Depends(get_db), _=Depends(admin_only)):
    """All users, optionally filtered by role and status."""
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    return query.order_by(User.created_at.desc()).all()

@router.patch('/users/{userID}', response_model=UserResponse)
@limiter.limit("10/minute")
def update_user(request: Request, userID: str, data: UserAdminUpdate, db: Session = Depends(get_db),
                admin: User = Depends(admin_only)):
    """
    Verify, badge, change the role of, or block/unblock a user.

    Args:
        request (Request): The request object.
        userID (str): The ID of the user to update.
        data (UserAdminUpdate): The fields to change, omitted fields stay as they are.
        db (Session): The database session.
        admin (User): The acting admin.

    Raises:
        HTTPException: If the user is not found (404).
        HTTPException: If the admin tries to change their own role or status (400).

    Returns:
        User: The updated user.
    """
    user = get_user_by_id(db, userID)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if user.id == admin.id and ('role' in changes or 'status' in changes):
        raise HTTPException(status_code=400, detail="You cannot change your own role or status")

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(f"Admin {admin.id} updated user {user.id}: {changes}")
    return user

@router.post('/users/{userID}/ban', response_model=UserResponse)
@limiter.limit("3/minute")
def ban_user(request: Request, userID: str, db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    """Ban a user. Banned users are refused by every authenticated endpoint."""
    user = get_user_by_id(db, userID)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot ban yourself")
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admins cannot be banned")
    user.status = UserStatus.BANNED
    db.commit()
    db.refresh(user)
    logger.info(f"Admin {admin.id} banned user {user.id}")
    return user

########################
###### MODERATION ######
########################

@router.get('/reports', response_model=List[ReportDetailResponse])
def get_reports(db: Session = Depends(get_db), _=Depends(admin_only)):
    """Pending message reports with the reported message."""
    return [{
        "id": report.id,
        "message_id": report.message_id,
        "flagged_by": report.flagged_by,
        "reason": report.reason,
        "status": report.status,
        "created_at": report.created_at,
        "message": report.message.message,
        "session_id": report.message.session_id,
        "sender_id": report.message.sender_id,
        "reporter_name": report.reporter.name,
    } for report in list_pending_reports(db)]

@router.patch('/reports/{reportID}', response_model=ReportResponse)
def update_report(reportID: str, data: ReportResolve, db: Session = Depends(get_db), _=Depends(admin_only)):
    return resolve_report(db, reportID, data.status, data.flag_content, data.flagged_content_reason)

@router.get('/appeals', response_model=List[AppealResponse])
def get_appeals(status: Optional[AppealStatus] = None, db: Session = Depends(get_db), _=Depends(admin_only)):
    query = db.query(Appeal)
    if status:
        query = query.filter(Appeal.status == status)
    return query.order_by(Appeal.created_at.desc()).all()

@router.patch('/appeals/{appealID}', response_model=AppealResponse)
def respond_to_appeal(appealID: str, data: AppealRespond, db: Session = Depends(get_db),
                      admin: User = Depends(admin_only)):
    if data.status == AppealStatus.PENDING:
        raise HTTPException(status_code=400, detail="An appeal cannot be moved back to pending")
    appeal = db.query(Appeal).filter(Appeal.id == appealID).first()
    if not appeal:
        raise HTTPException(status_code=404, detail="Appeal not found")
    appeal.status = data.status
    appeal.admin_response = data.admin_response
    db.commit()
    db.refresh(appeal)
    logger.info(f"Admin {admin.id} answered appeal {appeal.id} with {data.status.value}")
    return appeal

@router.get('/keywords', response_model=List[KeywordResponse])
def get_keywords(db: Session = Depends(get_db), _=Depends(admin_only)):
    return db.query(RestrictedContent).order_by(RestrictedContent.keyword.asc()).all()

@router.post('/keywords', response_model=KeywordResponse)
def add_keyword(data: KeywordCreate, db: Session = Depends(get_db), _=Depends(admin_only)):
    """Add a keyword to the chat filter's academic allow-list."""
    if db.query(RestrictedContent).filter(RestrictedContent.keyword == data.keyword).first():
        raise HTTPException(status_code=400, detail="Keyword already exists")
    keyword = RestrictedContent(keyword=data.keyword, category=data.category)
    db.add(keyword)
    db.commit()
    db.refresh(keyword)
    invalidate_keyword_cache()
    return keyword

@router.delete('/keywords/{keywordID}')
def delete_keyword(keywordID: str, db: Session = Depends(get_db), _=Depends(admin_only)):
    keyword = db.query(RestrictedContent).filter(RestrictedContent.id == keywordID).first()
    if not keyword:
        raise HTTPException(status_code=404, detail="Keyword not found")
    db.delete(keyword)
    db.commit()
    invalidate_keyword_cache()
    return {"keyword_id": keywordID, "message": f"Keyword {keyword.keyword} deleted"}

########################
### MONEY & SESSIONS ###
########################

@router.get('/withdrawals', response_model=WithdrawalListResponse)
def get_withdrawals(status: Optional[WithdrawalStatus] = None, db: Session = Depends(get_db),
                    _=Depends(admin_only)):
    withdrawals, totals = list_withdrawals(db, status)
    return {"withdrawals": withdrawals, **totals}

@router.patch('/withdrawals/{withdrawalID}', response_model=WithdrawalResponse)
@limiter.limit("10/minute")
def update_withdrawal(request: Request, withdrawalID: str, data: WithdrawalStatusUpdate,
                      db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    """
    Move a withdrawal to processing, completed or failed.
    Completing debits the tutor's wallet (409 when the balance no longer covers it).
    """
    return update_withdrawal_status(db, withdrawalID, data.status, data.reference, admin)

def _get_session(db: Session, sessionID: str) -> TutoringSession:
    if not is_valid_uuid(sessionID):
        raise HTTPException(status_code=400, detail="Invalid session ID format")
    session = db.query(TutoringSession).filter(TutoringSession.id == sessionID).first()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session

@router.get('/sessions', response_model=List[SessionResponse])
def get_sessions(status: Optional[SessionStatus] = None, db: Session = Depends(get_db), _=Depends(admin_only)):
    query = db.query(TutoringSession)
    if status:
        query = query.filter(TutoringSession.status == status)
    return query.order_by(TutoringSession.scheduled_at.desc()).all()

@router.patch('/sessions/{sessionID}', response_model=SessionResponse)
def update_session_status(sessionID: str, data: SessionStatusUpdate, db: Session = Depends(get_db),
                          _=Depends(admin_only)):
    """Cancel or complete a session on a participant's behalf."""
    if data.status not in (SessionStatus.CANCELLED, SessionStatus.COMPLETED):
        raise HTTPException(status_code=400, detail="Admins can only cancel or complete sessions")
    return transition(db, _get_session(db, sessionID), data.status)

@router.post('/sessions/{sessionID}/settle', response_model=SettlementResponse)
@limiter.limit("10/minute")
def retry_settlement(request: Request, sessionID: str, db: Session = Depends(get_db),
                     gateway: FlutterwaveClient = Depends(get_payment_gateway), admin: User = Depends(admin_only)):
    """
    Run (or retry) the escrow settlement of a session.

    Raises:
        HTTPException: If the gateway or the database failed again (502).

    Returns:
        dict: The settlement outcome, "already_settled" when there is nothing left to do.
    """
    logger.info(f"Admin {admin.id} requested settlement of session {sessionID}")
    result = settle_session(db, _get_session(db, sessionID), gateway)
    if result.status == FAILED:
        raise HTTPException(status_code=502, detail=f"Settlement failed: {result.error}")
    return result.to_dict()

########################
####### QUIZZES ########
########################

@router.post('/departments', response_model=DepartmentResponse)
def add_department(data: DepartmentBase, db: Session = Depends(get_db), _=Depends(admin_only)):
    return create_department(db, data.name)

@router.post('/questions')
def add_quiz_question(data: QuestionCreate, db: Session = Depends(get_db), _=Depends(admin_only)):
    question = add_question(db, data)
    return {"question_id": question.id, "message": "Question added"}

########################
###### DASHBOARD #######
########################

@router.get('/analytics', response_model=PlatformAnalyticsResponse)
@limiter.limit("10/minute")
def platform_analytics(request: Request, db: Session = Depends(get_db), _=Depends(admin_only)):
    """
    Platform numbers for the admin dashboard.
    Rate limited to 10 requests per minute and cached for 10 minutes when Redis is enabled.
    """
    if USE_REDIS:
        cached_data = redis_client.get_json(ANALYTICS_CACHE_KEY)
        if cached_data:
            return cached_data

    users_by_role = {role.value: count for role, count in
                     db.query(User.role, func.count(User.id)).group_by(User.role).all()}
    sessions_by_status = {status.value: count for status, count in
                          db.query(TutoringSession.status, func.count(TutoringSession.id))
                          .group_by(TutoringSession.status).all()}

    def completed_total(transaction_type: TransactionType) -> int:
        return db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
            Transaction.type == transaction_type,
            Transaction.status == TransactionStatus.COMPLETED
        ).scalar()

    data = {
        "users_by_role": users_by_role,
        "sessions_by_status": sessions_by_status,
        "total_payment_volume": completed_total(TransactionType.PAYMENT),
        "total_earnings_paid": completed_total(TransactionType.EARNING),
        "message_count": db.query(ChatMessage).count(),
        "generated_at": utcnow(),
    }
    if USE_REDIS:
        redis_client.set_json(ANALYTICS_CACHE_KEY, data, expiration=600)  # Cache for 10 minutes

    return data
