"""API package exports."""

from backoffice.api.middleware import CorrelationIdMiddleware
from backoffice.api.routes import router

__all__ = ["router", "CorrelationIdMiddleware"]
