from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Optional
from datetime import datetime
from bleach import clean
from hireveno.database.database import AppealStatus

class AppealCreate(BaseModel):
    type: Annotated[str, StringConstraints(min_length=1, max_length=50)]
    subject: Annotated[str, StringConstraints(min_length=1, max_length=200)]
    description: Annotated[str, StringConstraints(min_length=1)]

    @field_validator('type', 'subject', 'description')
    def sanitize_text(cls, v):
        v = clean(v, tags=[], attributes={}, strip=True).strip()
        if not v:
            raise ValueError('Field cannot be empty')
        return v

class AppealResponse(BaseModel):
    id: str
    user_id: str
    type: str
    subject: str
    description: str
    status: AppealStatus
    admin_response: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class AppealRespond(BaseModel):
    status: AppealStatus
    admin_response: str

    @field_validator('admin_response')
    def sanitize_response(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)
