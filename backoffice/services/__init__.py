"""Services package exports."""

from backoffice.services.auth_service import AuthService
from backoffice.services.content_service import ContentService
from backoffice.services.logging_service import configure_logging, get_logger
from backoffice.services.password_hasher import PasswordHasher
from backoffice.services.token_service import TokenIssuer
from backoffice.services.user_service import UserService

__all__ = [
    "AuthService",
    "ContentService",
    "PasswordHasher",
    "TokenIssuer",
    "UserService",
    "configure_logging",
    "get_logger",
]
