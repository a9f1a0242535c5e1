"""Middleware module for the service booking API."""

from .auth import get_current_principal, create_access_token
from .logging import RequestResponseLoggingMiddleware

__all__ = [
    "get_current_principal",
    "create_access_token",
    "RequestResponseLoggingMiddleware"
]
