"""API package exports."""

from userauth.api.middleware import CorrelationIdMiddleware
from userauth.api.routes import router
from userauth.api.users import router as users_router

__all__ = ["router", "users_router", "CorrelationIdMiddleware"]
