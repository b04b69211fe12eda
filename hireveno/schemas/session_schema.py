from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime, timezone
from bleach import clean
from hireveno.database.database import SessionStatus

def to_naive_utc(v: datetime) -> datetime:
    """Timestamps are stored as naive UTC. Aware inputs are converted, naive inputs are taken as UTC."""
    if v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v

class BookingDetails(BaseModel):
    """What the learner picked in the booking form"""
    student_id: str  # The tutor being booked
    duration: int  # Duration in minutes
    scheduled_at: datetime
    description: Optional[str] = None

    @field_validator('scheduled_at')
    def normalize_scheduled_at(cls, v):
        return to_naive_utc(v)

    @field_validator('description')
    def sanitize_description(cls, v):
        return clean(v, tags=[], attributes={}, strip=True) if v else v

class SessionResponse(BaseModel):
    """Session response data"""
    id: str
    client_id: str
    student_id: str
    duration: int
    scheduled_at: datetime
    amount: int
    status: SessionStatus
    payment_status: Optional[str] = None
    payment_reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class SessionStatusUpdate(BaseModel):
    status: SessionStatus

class ChatTimerResponse(BaseModel):
    """Countdown state of a session's chat window"""
    session_id: str
    phase: str  # not_started, active, ended
    seconds_until_start: int
    seconds_remaining: int
    can_send: bool
    status: SessionStatus
    review_required: bool
