"""
Appeals router: users contest moderation decisions or raise account issues.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List
from hireveno.auth_tools import get_current_user
from hireveno.database.database import get_db, User, Appeal, AppealStatus
from hireveno.schemas.appeal_schema import AppealCreate, AppealResponse
from hireveno.rate_limit import limiter
from hireveno.logger import logger

router = APIRouter(prefix='/appeals')

@router.post('/', response_model=AppealResponse)
@limiter.limit("5/minute")
def create_appeal(request: Request, data: AppealCreate, current_user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    appeal = Appeal(
        user_id=current_user.id,
        type=data.type,
        subject=data.subject,
        description=data.description,
        status=AppealStatus.PENDING,
    )
    db.add(appeal)
    db.commit()
    db.refresh(appeal)
    logger.info(f"Appeal {appeal.id} submitted by {current_user.id}")
    return appeal

@router.get('/', response_model=List[AppealResponse])
def my_appeals(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Appeal).filter(Appeal.user_id == current_user.id).order_by(Appeal.created_at.desc()).all()
