"""bcrypt password hashing."""

import bcrypt
import structlog

from backoffice.exceptions import BadRequestError

logger = structlog.get_logger(__name__)

DEFAULT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted one-way hashing of plaintext passwords.

    Args:
        rounds: bcrypt cost factor (log2 of the iteration count)
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt with a fresh salt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string (salt and cost embedded)

        Raises:
            BadRequestError: If the password exceeds bcrypt's 72-byte input limit
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        A malformed hash counts as a mismatch rather than an error.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except (ValueError, TypeError) as e:
            logger.warning("password_hash_malformed", error=str(e))
            return False
