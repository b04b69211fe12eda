from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from bleach import clean
from hireveno.database.database import ReportStatus

class ReportResponse(BaseModel):
    """Moderation report on a chat message"""
    id: str
    message_id: str
    flagged_by: str
    reason: str
    status: ReportStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ReportDetailResponse(ReportResponse):
    """Report with the reported message for the moderation queue"""
    message: str
    session_id: str
    sender_id: str
    reporter_name: str

class ReportResolve(BaseModel):
    status: ReportStatus
    flag_content: bool = False
    flagged_content_reason: Optional[str] = None

    @field_validator('flagged_content_reason')
    def sanitize_reason(cls, v):
        return clean(v, tags=[], attributes={}, strip=True) if v else v
