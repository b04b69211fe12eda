from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Optional
from datetime import datetime
from bleach import clean

class MessageCreate(BaseModel):
    """Message send request"""
    message: Annotated[str, StringConstraints(min_length=1, max_length=2000)]
    replied_to: Optional[str] = None

    @field_validator('message')
    def sanitize_message(cls, v):
        # Chat is plain text: tags are stripped, a bare "&" stays as typed
        return clean(v, tags=[], attributes={}, strip=True).replace("&amp;", "&")

class MessageResponse(BaseModel):
    """Message response data"""
    id: str
    session_id: str
    sender_id: str
    message: str
    replied_to: Optional[str] = None
    created_at: datetime
    is_flagged: bool
    is_flagged_content: bool
    flagged_content_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class MessageDeletedResponse(BaseModel):
    """Message deleted response data"""
    message_id: str
    message: str

class FlagMessageRequest(BaseModel):
    reason: str = "Inappropriate content"

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)
