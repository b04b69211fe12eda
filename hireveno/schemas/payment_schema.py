from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime
from hireveno.schemas.session_schema import BookingDetails, SessionResponse
from hireveno.database.database import TransactionType, TransactionStatus

class CheckoutResponse(BaseModel):
    """Inline checkout configuration handed to the Flutterwave modal"""
    public_key: str
    tx_ref: str
    amount: int  # major units
    currency: str
    payment_options: str
    customer: Dict[str, str]
    customizations: Dict[str, str]
    meta: Dict[str, str]

class GatewayCallback(BaseModel):
    """What the checkout modal hands back on completion"""
    status: str
    tx_ref: str
    flw_ref: Optional[str] = None
    transaction_id: Optional[int] = None

class GatewayConfirmRequest(BaseModel):
    booking: BookingDetails
    callback: GatewayCallback

class TransactionResponse(BaseModel):
    id: str
    user_id: str
    session_id: Optional[str] = None
    amount: int
    type: TransactionType
    status: TransactionStatus
    reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class BookingResponse(BaseModel):
    session: SessionResponse
    transaction: TransactionResponse

class WebhookPayload(BaseModel):
    event: str
    data: Dict[str, Any] = {}
