"""
Wallet router: balance and history, payout bank details and withdrawal requests.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from hireveno.auth_tools import get_current_user, student_only
from hireveno.database.database import get_db, User
from hireveno.schemas.user_schema import ProfileResponse
from hireveno.schemas.wallet_schema import BankDetails, WalletResponse, WithdrawalCreate, WithdrawalResponse
from hireveno.services.wallet import get_wallet, save_bank_details, request_withdrawal
from hireveno.rate_limit import limiter

router = APIRouter(prefix='/wallet')

@router.get('/', response_model=WalletResponse)
def wallet_overview(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Balance, ledger entries and withdrawals, newest first."""
    db.refresh(current_user)
    transactions, withdrawals = get_wallet(db, current_user)
    return {
        "wallet_balance": current_user.wallet_balance,
        "has_bank_details": current_user.has_bank_details,
        "transactions": transactions,
        "withdrawals": withdrawals,
    }

@router.put('/bank', response_model=ProfileResponse)
def update_bank_details(details: BankDetails, current_user: User = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    return save_bank_details(db, current_user, details)

@router.post('/withdrawals', response_model=WithdrawalResponse)
@limiter.limit("5/minute")
def create_withdrawal(request: Request, data: WithdrawalCreate, current_user: User = Depends(student_only),
                      db: Session = Depends(get_db)):
    """
    Request a payout of wallet funds.

    Raises:
        HTTPException: If bank details are missing, or the amount is below the
        minimum or above the balance (400).
    """
    return request_withdrawal(db, current_user, data.amount)
