"""
Review router. A learner's review of a finished session releases the payment to the tutor.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from hireveno.auth_tools import get_current_user
from hireveno.database.database import get_db, User
from hireveno.schemas.review_schema import ReviewCreate, ReviewSubmitResponse
from hireveno.services.flutterwave import FlutterwaveClient, get_payment_gateway
from hireveno.services.sessions import get_session_for_user
from hireveno.services.settlement import submit_review
from hireveno.rate_limit import limiter

router = APIRouter(prefix='/sessions')

@router.post('/{sessionID}/review', response_model=ReviewSubmitResponse)
@limiter.limit("10/minute")
def review_session(request: Request, sessionID: str, data: ReviewCreate,
                   current_user: User = Depends(get_current_user), db: Session = Depends(get_db),
                   gateway: FlutterwaveClient = Depends(get_payment_gateway)):
    """
    Rate a finished session.

    Args:
        request (Request): The request object.
        sessionID (str): The ID of the session.
        data (ReviewCreate): Rating (1-5) and optional comment.
        current_user (User): The reviewing participant.
        db (Session): The database session.
        gateway (FlutterwaveClient): Gateway used to release escrow and pay out.

    Raises:
        HTTPException: If the rating is out of range or the session is not finished (400).
        HTTPException: If the user is not a participant (403).
        HTTPException: If the user already reviewed this session (409).

    Returns:
        dict: The review and, for learners, the settlement outcome. A failed
        settlement is reported here and never undoes the review.
    """
    session = get_session_for_user(db, sessionID, current_user)
    review, settlement = submit_review(db, session, current_user, data.rating, data.comment, gateway)
    return {"review": review, "settlement": settlement.to_dict() if settlement else None}
