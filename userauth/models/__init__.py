"""Models package exports."""

from userauth.models.auth import LoginData, LoginRequest, RefreshRequest, TokenPair
from userauth.models.response import ApiResponse, ErrorResponse
from userauth.models.user import User

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "LoginData",
    "LoginRequest",
    "RefreshRequest",
    "TokenPair",
    "User",
]
