from pydantic import BaseModel, ConfigDict, field_validator
from typing import Dict, Optional
from datetime import datetime
from bleach import clean
from hireveno.database.database import UserRole, UserStatus

class UserAdminUpdate(BaseModel):
    """Admin changes to an account, every field optional"""
    is_verified: Optional[bool] = None
    badge: Optional[bool] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

class PlatformAnalyticsResponse(BaseModel):
    """Admin dashboard data"""
    users_by_role: Dict[str, int]
    sessions_by_status: Dict[str, int]
    total_payment_volume: int
    total_earnings_paid: int
    message_count: int
    generated_at: datetime

class KeywordCreate(BaseModel):
    keyword: str
    category: str = "academic"

    @field_validator('keyword')
    def normalize_keyword(cls, v):
        v = clean(v, tags=[], attributes={}, strip=True).strip().lower()
        if not v:
            raise ValueError('Keyword cannot be empty')
        return v

class KeywordResponse(BaseModel):
    id: str
    keyword: str
    category: str

    model_config = ConfigDict(from_attributes=True)
