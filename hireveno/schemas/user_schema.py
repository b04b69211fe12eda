from pydantic import BaseModel, ConfigDict, EmailStr, StringConstraints, field_validator
from typing import Annotated, Optional, List
from hireveno.database.database import UserRole, UserStatus
from bleach import clean
from datetime import datetime

############################
### USER ACCOUNT SCHEMAS ###
############################

class UserBase(BaseModel):
    """Base user data"""
    # Add constraints to name field (min length: 1, max length: 100)
    name: Annotated[str, StringConstraints(min_length=1, max_length=100)]

    @field_validator('name')
    def sanitize_name(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)

class UserRegister(UserBase):
    """Registration data. Email and id come from the auth token."""
    role: UserRole
    department_id: Optional[str] = None
    jamb_reg: Optional[str] = None

    @field_validator('role')
    def validate_role(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError('Admin accounts cannot be self-registered')
        return v

class ProfileUpdate(BaseModel):
    """Profile update data, every field optional"""
    name: Optional[Annotated[str, StringConstraints(min_length=1, max_length=100)]] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    department_id: Optional[str] = None

    @field_validator('name', 'bio')
    def sanitize_text(cls, v):
        return clean(v, tags=[], attributes={}, strip=True) if v is not None else v

class UserResponse(UserBase):
    """User response data"""
    id: str
    email: EmailStr
    role: UserRole
    status: UserStatus
    is_verified: bool
    badge: bool
    quiz_score: Optional[int] = None
    department_id: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ProfileResponse(UserResponse):
    """Own profile, including wallet and payout details"""
    wallet_balance: int
    bank_name: Optional[str] = None
    bank_code: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    jamb_reg: Optional[str] = None

############################
###### TUTOR SCHEMAS #######
############################

class TutorReview(BaseModel):
    rating: int
    comment: Optional[str] = None
    reviewer_name: str
    created_at: datetime

class TutorDetailResponse(UserResponse):
    """Public tutor profile with review summary"""
    average_rating: Optional[float] = None
    total_reviews: int = 0
    reviews: List[TutorReview] = []

class DepartmentBase(BaseModel):
    name: str

    @field_validator('name')
    def sanitize_name(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)

class DepartmentResponse(DepartmentBase):
    id: str

    model_config = ConfigDict(from_attributes=True)
