from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, List, Optional
from datetime import datetime
from bleach import clean
from hireveno.database.database import WithdrawalStatus
from hireveno.schemas.payment_schema import TransactionResponse

class BankDetails(BaseModel):
    """Payout destination. All four fields are required."""
    bank_name: Annotated[str, StringConstraints(min_length=1, max_length=100)]
    bank_code: Annotated[str, StringConstraints(min_length=1, max_length=20)]
    account_number: Annotated[str, StringConstraints(pattern=r'^\d{10}$')]
    account_name: Annotated[str, StringConstraints(min_length=1, max_length=100)]

    @field_validator('bank_name', 'account_name')
    def sanitize_text(cls, v):
        return clean(v, tags=[], attributes={}, strip=True)

class WithdrawalCreate(BaseModel):
    amount: int  # kobo

class WithdrawalResponse(BaseModel):
    id: str
    user_id: str
    amount: int
    bank_code: str
    account_number: str
    account_name: str
    status: WithdrawalStatus
    reference: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class WithdrawalStatusUpdate(BaseModel):
    status: WithdrawalStatus
    reference: Optional[str] = None

class WalletResponse(BaseModel):
    wallet_balance: int
    has_bank_details: bool
    transactions: List[TransactionResponse]
    withdrawals: List[WithdrawalResponse]

class WithdrawalListResponse(BaseModel):
    withdrawals: List[WithdrawalResponse]
    total_amount: int
    completed_amount: int
    pending_amount: int
