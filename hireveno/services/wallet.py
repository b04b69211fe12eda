"""
Wallet bookkeeping: payout details, withdrawal requests and their admin processing.

A withdrawal request does not touch the balance. The debit happens when an admin
marks it completed, as one conditional UPDATE together with the ledger row.
"""
from typing import List, Optional, Tuple
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from hireveno.config import get_settings
from hireveno.database.database import (
    Transaction, TransactionStatus, TransactionType, User, UserRole, Withdrawal, WithdrawalStatus, is_valid_uuid
)
from hireveno.schemas.wallet_schema import BankDetails
from hireveno.logger import logger, audit_logger

WITHDRAWAL_TRANSITIONS = {
    WithdrawalStatus.REQUESTED: {WithdrawalStatus.PROCESSING, WithdrawalStatus.FAILED},
    WithdrawalStatus.PROCESSING: {WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED},
    WithdrawalStatus.COMPLETED: set(),
    WithdrawalStatus.FAILED: set(),
}

def get_wallet(db: Session, user: User) -> Tuple[List[Transaction], List[Withdrawal]]:
    """Ledger entries and withdrawals of a user, newest first."""
    transactions = db.query(Transaction).filter(
        Transaction.user_id == user.id
    ).order_by(Transaction.created_at.desc()).all()
    withdrawals = db.query(Withdrawal).filter(
        Withdrawal.user_id == user.id
    ).order_by(Withdrawal.created_at.desc()).all()
    return transactions, withdrawals

def save_bank_details(db: Session, user: User, details: BankDetails) -> User:
    user.bank_name = details.bank_name
    user.bank_code = details.bank_code
    user.account_number = details.account_number
    user.account_name = details.account_name
    db.commit()
    db.refresh(user)
    logger.info(f"Bank details updated for user {user.id}")
    return user

def request_withdrawal(db: Session, user: User, amount: int) -> Withdrawal:
    """
    Ask for a payout of wallet funds to the saved bank account.

    Raises:
        HTTPException(403): only tutors withdraw
        HTTPException(400): no bank details, amount below the minimum or above the balance
    """
    if user.role != UserRole.STUDENT:
        raise HTTPException(status_code=403, detail="Only tutors can request withdrawals")
    if not user.has_bank_details:
        raise HTTPException(status_code=400, detail="Please add your bank details first")

    minimum = get_settings().min_withdrawal_amount
    if amount < minimum:
        raise HTTPException(status_code=400, detail=f"Minimum withdrawal amount is {minimum // 100} NGN")

    db.refresh(user)
    if amount > user.wallet_balance:
        raise HTTPException(status_code=400, detail="Insufficient balance")

    withdrawal = Withdrawal(
        user_id=user.id,
        amount=amount,
        bank_code=user.bank_code,
        account_number=user.account_number,
        account_name=user.account_name,
        status=WithdrawalStatus.REQUESTED,
    )
    db.add(withdrawal)
    db.commit()
    db.refresh(withdrawal)
    audit_logger.log_event("withdrawal.requested", user.id, {"withdrawal_id": withdrawal.id, "amount": amount})
    return withdrawal

def _get_withdrawal(db: Session, withdrawal_id: str) -> Withdrawal:
    if not is_valid_uuid(withdrawal_id):
        raise HTTPException(status_code=400, detail="Invalid withdrawal ID format")
    withdrawal = db.query(Withdrawal).filter(Withdrawal.id == withdrawal_id).first()
    if not withdrawal:
        raise HTTPException(status_code=404, detail="Withdrawal not found")
    return withdrawal

def update_withdrawal_status(db: Session, withdrawal_id: str, new_status: WithdrawalStatus,
                             reference: Optional[str] = None, admin: Optional[User] = None) -> Withdrawal:
    """
    Move a withdrawal along requested -> processing -> completed (or to failed).
    Completing debits the wallet and writes the withdrawal ledger row in one commit.

    Raises:
        HTTPException(409): transition not allowed, or the wallet no longer covers the amount
    """
    withdrawal = _get_withdrawal(db, withdrawal_id)
    old_status = withdrawal.status
    if new_status not in WITHDRAWAL_TRANSITIONS[old_status]:
        raise HTTPException(status_code=409,
                            detail=f"Cannot change withdrawal status from {old_status.value} to {new_status.value}")

    try:
        rows = db.query(Withdrawal).filter(
            Withdrawal.id == withdrawal.id,
            Withdrawal.status == old_status
        ).update({Withdrawal.status: new_status, Withdrawal.reference: reference or withdrawal.reference},
                 synchronize_session=False)
        if rows == 0:
            db.rollback()
            raise HTTPException(status_code=409, detail="Withdrawal was changed by someone else, please reload")

        if new_status == WithdrawalStatus.COMPLETED:
            debited = db.query(User).filter(
                User.id == withdrawal.user_id,
                User.wallet_balance >= withdrawal.amount
            ).update({User.wallet_balance: User.wallet_balance - withdrawal.amount}, synchronize_session=False)
            if debited == 0:
                db.rollback()
                raise HTTPException(status_code=409, detail="Wallet balance no longer covers this withdrawal")

            db.add(Transaction(
                user_id=withdrawal.user_id,
                amount=withdrawal.amount,
                type=TransactionType.WITHDRAWAL,
                status=TransactionStatus.COMPLETED,
                reference=reference or withdrawal.reference or f"withdrawal_{withdrawal.id}",
                description="Wallet withdrawal",
            ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating withdrawal {withdrawal.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update withdrawal. Please try again.")

    db.refresh(withdrawal)
    audit_logger.log_event(f"withdrawal.{new_status.value}", withdrawal.user_id, {
        "withdrawal_id": withdrawal.id, "amount": withdrawal.amount,
        "from": old_status.value, "reference": withdrawal.reference,
        "admin_id": admin.id if admin else None,
    })
    return withdrawal

def list_withdrawals(db: Session, status: Optional[WithdrawalStatus] = None) -> Tuple[List[Withdrawal], dict]:
    """All withdrawals (optionally one status) and the amount totals of the listed rows."""
    query = db.query(Withdrawal)
    if status:
        query = query.filter(Withdrawal.status == status)
    withdrawals = query.order_by(Withdrawal.created_at.desc()).all()

    totals = {
        "total_amount": sum(w.amount for w in withdrawals),
        "completed_amount": sum(w.amount for w in withdrawals if w.status == WithdrawalStatus.COMPLETED),
        "pending_amount": sum(w.amount for w in withdrawals
                              if w.status in (WithdrawalStatus.REQUESTED, WithdrawalStatus.PROCESSING)),
    }
    return withdrawals, totals
