"""
User router: registration of an authenticated identity, own profile, and the tutor directory.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
from hireveno.auth_tools import get_current_identity, get_current_user
from hireveno.database.database import get_db, User, Department, UserRole, UserStatus
from hireveno.schemas.authentication_schema import DecodedAccessToken
from hireveno.schemas.user_schema import (
    UserRegister, ProfileUpdate, ProfileResponse, UserResponse, TutorDetailResponse, DepartmentResponse
)
from hireveno.utilities import get_department, list_tutors, get_tutor_detail
from hireveno.rate_limit import limiter
from hireveno.logger import logger

router = APIRouter(prefix='/users')

@router.post('/register', response_model=ProfileResponse)
@limiter.limit("10/minute")
def register(request: Request, data: UserRegister, identity: DecodedAccessToken = Depends(get_current_identity),
             db: Session = Depends(get_db)):
    """
    Create the profile of the authenticated identity.

    Args:
        request (Request): The request object.
        data (UserRegister): Name, role (student or aspirant), department and JAMB number.
        identity (DecodedAccessToken): Identity from the auth provider's token.
        db (Session): The database session.

    Raises:
        HTTPException: If a profile already exists for this identity or email (400).
        HTTPException: If the department does not exist (404).

    Returns:
        User: The new profile, active, unverified and without badge.
    """
    if db.query(User).filter((User.id == identity.sub) | (User.email == identity.email)).first():
        raise HTTPException(status_code=400, detail="User already registered")
    if data.role == UserRole.STUDENT and not data.department_id:
        raise HTTPException(status_code=400, detail="Students must select a department")
    get_department(db, data.department_id)

    user = User(
        id=identity.sub,
        email=identity.email,
        name=data.name,
        role=data.role,
        status=UserStatus.ACTIVE,
        department_id=data.department_id,
        jamb_reg=data.jamb_reg,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User already registered")
    db.refresh(user)
    logger.info(f"Registered {user.role.value} {user.id}")
    return user

@router.get('/me', response_model=ProfileResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.put('/me', response_model=ProfileResponse)
def update_me(data: ProfileUpdate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Update name, bio, profile image URL or department. Omitted fields are left alone."""
    changes = data.model_dump(exclude_unset=True)
    if changes.get('department_id'):
        get_department(db, changes['department_id'])
    for field, value in changes.items():
        if field == 'name' and not value:
            continue
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user

@router.get('/tutors', response_model=List[UserResponse])
def get_tutors(department_id: Optional[str] = None, db: Session = Depends(get_db),
               current_user: User = Depends(get_current_user)):
    """Tutors a learner can book, optionally limited to one department."""
    return list_tutors(db, department_id)

@router.get('/tutors/{tutorID}', response_model=TutorDetailResponse)
def get_tutor(tutorID: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return get_tutor_detail(db, tutorID)

@router.get('/departments', response_model=List[DepartmentResponse])
def get_departments(db: Session = Depends(get_db)):
    """Departments, for the registration form. No authentication needed."""
    return db.query(Department).order_by(Department.name.asc()).all()
