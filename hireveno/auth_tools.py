from typing import Any
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from hireveno.logger import logger
from hireveno.database.database import get_db, User, UserRole, UserStatus
from hireveno.schemas.authentication_schema import DecodedAccessToken
from hireveno.config import get_settings
from datetime import datetime

# security scheme. Tokens are issued by the hosted auth provider.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

##################################
### AUTHORIZATION DEPENDENCIES ###
##################################

def decode_access_token(token: str) -> DecodedAccessToken:
    """
    Decode and validate an access token issued by the auth provider.

    Args:
    - token (str): The bearer token

    Returns:
    - DecodedAccessToken: The identity carried by the token
    """
    settings = get_settings()
    try:
        payload : dict[str, Any] = jwt.decode(token, settings.secret_key, algorithms=[settings.hash_algorithm],
                                              options={"verify_aud": False})
    except JWTError as e:
        logger.error(f"Error decoding token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token. Could not decode token.")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token. Missing user ID.")

    if not payload.get("email"):
        raise HTTPException(status_code=401, detail="Invalid token. Missing email.")

    # Check if token has expired
    if payload.get("exp") is None or payload.get("exp") < int(datetime.now().timestamp()):
        raise HTTPException(status_code=401, detail="Token has expired.")

    return DecodedAccessToken(sub=payload["sub"], email=payload["email"], exp=payload["exp"])

def get_current_identity(token: str = Depends(oauth2_scheme)) -> DecodedAccessToken:
    """Authenticated identity, which may not have a profile yet (used by registration)."""
    return decode_access_token(token)

def get_current_user(identity: DecodedAccessToken = Depends(get_current_identity), db: Session = Depends(get_db)) -> User:
    """
    Load the profile of the authenticated user.
    This is the explicit user context handed to every core operation.

    Raises:
    - HTTPException(403): profile missing, or account blocked/banned
    """
    user = db.query(User).filter(User.id == identity.sub).first()
    if not user:
        raise HTTPException(status_code=403, detail="Profile not found. Complete registration first.")

    if user.status in (UserStatus.BLOCKED, UserStatus.BANNED):
        raise HTTPException(status_code=403, detail=f"Account is {user.status.value}.")

    return user

def verify_user_role(user: User, allowed_roles) -> User:
    """
    Verify that the user has the required role.

    Args:
    - user (User): The current user
    - allowed_roles (list): List of allowed roles

    Returns:
    - User: The same user, if allowed
    """
    if not user or user.role not in allowed_roles:
        raise HTTPException(status_code=403,
                            detail=f"User must have one of these roles: {[role.value for role in allowed_roles]}")

    return user

def student_only(current_user: User = Depends(get_current_user)) -> User:
    """Verify that the user is a student (tutor)"""
    return verify_user_role(current_user, [UserRole.STUDENT])

def aspirant_only(current_user: User = Depends(get_current_user)) -> User:
    """Verify that the user is an aspirant (learner)"""
    return verify_user_role(current_user, [UserRole.ASPIRANT])

def admin_only(current_user: User = Depends(get_current_user)) -> User:
    """Verify that the user is an admin """
    return verify_user_role(current_user, [UserRole.ADMIN])
