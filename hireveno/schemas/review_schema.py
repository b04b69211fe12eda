from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from bleach import clean

class ReviewCreate(BaseModel):
    """Rating and optional comment for a finished session"""
    rating: int
    comment: Optional[str] = None

    @field_validator('comment')
    def sanitize_comment(cls, v):
        if v is None:
            return v
        v = clean(v, tags=[], attributes={}, strip=True).strip()
        return v or None

class ReviewResponse(BaseModel):
    id: str
    session_id: str
    reviewer_id: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class SettlementResponse(BaseModel):
    """Outcome of releasing a session's escrow to the tutor"""
    session_id: str
    status: str  # settled, already_settled, in_progress, failed
    payout: int = 0
    platform_fee: int = 0
    destination: Optional[str] = None  # bank or wallet
    reference: Optional[str] = None
    error: Optional[str] = None

class ReviewSubmitResponse(BaseModel):
    review: ReviewResponse
    settlement: Optional[SettlementResponse] = None
