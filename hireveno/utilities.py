from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException
from typing import Optional
from hireveno.database.database import User, Department, UserRole, UserStatus, is_valid_uuid
from hireveno.services.settlement import tutor_rating_summary
from hireveno.logger import logger

def get_user_by_id(db: Session, user_id: str) -> User:
    """Get user by ID with error handling"""
    if not is_valid_uuid(user_id):
        raise HTTPException(status_code=400, detail="Invalid user ID format")
    try:
        user = db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error retrieving user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error retrieving user data")
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def get_department(db: Session, department_id: Optional[str]) -> Optional[Department]:
    """Resolve an optional department reference, 404 when it does not exist"""
    if not department_id:
        return None
    department = db.query(Department).filter(Department.id == department_id).first()
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return department

def list_tutors(db: Session, department_id: Optional[str] = None) -> list:
    """Bookable tutors: active students holding the badge"""
    query = db.query(User).filter(
        User.role == UserRole.STUDENT,
        User.badge.is_(True),
        User.status == UserStatus.ACTIVE
    )
    if department_id:
        query = query.filter(User.department_id == department_id)
    return query.order_by(User.name.asc()).all()

def get_tutor_detail(db: Session, tutor_id: str) -> dict:
    """Public tutor profile with the learners' reviews"""
    tutor = get_user_by_id(db, tutor_id)
    if tutor.role != UserRole.STUDENT or not tutor.badge:
        raise HTTPException(status_code=404, detail="Tutor not found")

    average, reviews = tutor_rating_summary(db, tutor.id)
    return {
        **{column.name: getattr(tutor, column.name) for column in User.__table__.columns},
        "average_rating": average,
        "total_reviews": len(reviews),
        "reviews": [{
            "rating": review.rating,
            "comment": review.comment,
            "reviewer_name": review.reviewer.name,
            "created_at": review.created_at,
        } for review in reviews],
    }
