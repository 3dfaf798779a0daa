"""
JWT Token Authentication
========================

FastAPI dependency for JWT token validation via Authorization header.
The tenant of every markup engine request is the token's user id.

USAGE:
    from app.pricing_intelligence.auth import get_current_user_id

    @router.get("/endpoint")
    async def my_endpoint(user_id: str = Depends(get_current_user_id)):
        ...
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

# JWT Configuration from environment
ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "MARKUPENGINESECRET")
ACCESS_TOKEN_EXPIRY = os.getenv("ACCESS_TOKEN_EXPIRY", "1d")
JWT_ALGORITHM = "HS256"

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def parse_expiry(expiry_str: str) -> timedelta:
    """
    Parse expiry string (e.g., "1d", "2h", "30m") to timedelta.
    A bare number is taken as days.
    """
    expiry_str = expiry_str.strip().lower()
    units = {"d": "days", "h": "hours", "m": "minutes", "s": "seconds"}
    if expiry_str and expiry_str[-1] in units:
        return timedelta(**{units[expiry_str[-1]]: int(expiry_str[:-1])})
    return timedelta(days=int(expiry_str))


def create_access_token(data: Dict[str, Any]) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing user data (e.g., {"user_id": "123"})

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    payload = {
        **data,
        "exp": int((now + parse_expiry(ACCESS_TOKEN_EXPIRY)).timestamp()),
        "iat": int(now.timestamp()),
        "type": "access",
    }
    return jwt.encode(payload, ACCESS_TOKEN_SECRET, algorithm=JWT_ALGORITHM)


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an access token.

    Returns:
        Decoded payload, with `_id` copied to `user_id` when only `_id` is set

    Raises:
        HTTPException 401: If token is invalid, expired, or a refresh token
    """
    try:
        payload = jwt.decode(token, ACCESS_TOKEN_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired. Please refresh your token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Tokens issued by the main platform carry _id instead of user_id
    if "_id" in payload and "user_id" not in payload:
        payload["user_id"] = payload["_id"]

    if payload.get("type", "access") == "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type. Access token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_token_from_header(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Token from HTTPBearer, falling back to a raw Authorization header."""
    if credentials and credentials.credentials:
        return credentials.credentials

    auth_header = request.headers.get("Authorization") or request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return None


def verify_jwt_token(token: Optional[str] = Depends(get_token_from_header)) -> Dict[str, Any]:
    """
    Verify JWT token from Authorization header.

    RAISES:
    - HTTPException 401: If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please provide a valid JWT token in Authorization: Bearer <token> header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_access_token(token)


def get_current_user_id(current_user: Dict[str, Any] = Depends(verify_jwt_token)) -> str:
    user_id = current_user.get("user_id") or current_user.get("_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not identify a user.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)
