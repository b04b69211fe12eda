"""
Payment router: checkout configuration for the Flutterwave modal, booking confirmation
for gateway and wallet payments, and the gateway's webhook.
"""
import hmac
from fastapi import APIRouter, Depends, HTTPException, Request, Header
from sqlalchemy.orm import Session
from typing import Optional
from hireveno.auth_tools import aspirant_only
from hireveno.config import get_settings, Settings
from hireveno.database.database import get_db, User
from hireveno.schemas.payment_schema import CheckoutResponse, GatewayConfirmRequest, BookingResponse, WebhookPayload
from hireveno.schemas.session_schema import BookingDetails
from hireveno.services.payments import build_checkout, pay_with_gateway, pay_with_wallet, reconcile_webhook
from hireveno.rate_limit import limiter
from hireveno.logger import logger

router = APIRouter(prefix='/payments')

@router.post('/checkout', response_model=CheckoutResponse)
def checkout(booking: BookingDetails, current_user: User = Depends(aspirant_only),
             settings: Settings = Depends(get_settings)):
    """
    Inline checkout configuration for a booking. Nothing is stored yet: the booking
    is written when the modal's result comes back through /payments/gateway/confirm.
    """
    return build_checkout(current_user, booking, settings)

@router.post('/gateway/confirm', response_model=BookingResponse)
@limiter.limit("10/minute")
def confirm_gateway_payment(request: Request, data: GatewayConfirmRequest, current_user: User = Depends(aspirant_only),
                            db: Session = Depends(get_db)):
    """
    Record a booking paid through the checkout modal.

    Args:
        request (Request): The request object.
        data (GatewayConfirmRequest): The booking form and the modal's callback payload.
        current_user (User): The paying learner.
        db (Session): The database session.

    Raises:
        HTTPException: If the payment did not succeed (402), nothing is stored.
        HTTPException: If the booking is invalid (400) or the tutor cannot be booked (400/404).

    Returns:
        dict: The confirmed session and its payment transaction.
    """
    session, transaction = pay_with_gateway(db, current_user, data.booking, data.callback)
    return {"session": session, "transaction": transaction}

@router.post('/wallet', response_model=BookingResponse)
@limiter.limit("10/minute")
def pay_from_wallet(request: Request, booking: BookingDetails, current_user: User = Depends(aspirant_only),
                    db: Session = Depends(get_db)):
    """
    Book a session paid from the learner's wallet.

    Raises:
        HTTPException: If the balance does not cover the price (402, detail carries the shortfall).
    """
    session, transaction = pay_with_wallet(db, current_user, booking)
    return {"session": session, "transaction": transaction}

@router.post('/webhook')
def payment_webhook(payload: WebhookPayload, verif_hash: Optional[str] = Header(None, alias="verif-hash"),
                    db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """Gateway charge notifications. Always acknowledged once the signature checks out."""
    expected = settings.flutterwave_webhook_hash
    if expected and not hmac.compare_digest(verif_hash or "", expected):
        logger.warning("Rejected webhook with an invalid verif-hash")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    updated = reconcile_webhook(db, payload)
    return {"received": True, "updated": updated}
