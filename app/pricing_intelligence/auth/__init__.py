"""
Authentication Module
=====================

JWT token validation dependencies for the markup engine endpoints.
"""

from .jwt_auth import (
    create_access_token,
    get_current_user_id,
    get_token_from_header,
    verify_access_token,
    verify_jwt_token,
)

__all__ = [
    "create_access_token",
    "get_current_user_id",
    "get_token_from_header",
    "verify_access_token",
    "verify_jwt_token",
]
