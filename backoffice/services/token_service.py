"""Signed JWT issuance and verification for access and refresh tokens."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union
from uuid import uuid4

import jwt
import structlog

from backoffice.durations import parse_duration
from backoffice.exceptions import UnauthorizedError

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
REFRESH_TOKEN_TYPE = "refresh"
ACCESS_TOKEN_TYPE = "access"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Creates and verifies access and refresh JWTs.

    Access and refresh tokens are signed with independent secrets, so a
    token of one kind never verifies as the other.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = JWT_ALGORITHM,
        clock: Optional[Clock] = None,
    ):
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.algorithm = algorithm
        self._clock = clock or utcnow

    def _encode(
        self,
        claims: dict[str, Any],
        ttl: Union[str, timedelta],
        secret: str,
        token_type: str,
    ) -> tuple[str, datetime]:
        if not claims.get("sub"):
            raise ValueError("Token claims must include 'sub'")

        now = self._clock()
        expires_at = now + parse_duration(ttl)
        payload = {
            **claims,
            "type": token_type,
            "jti": uuid4().hex,
            "iat": now,
            "exp": expires_at,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm), expires_at

    def issue_access_token(
        self, claims: dict[str, Any], ttl: Union[str, timedelta]
    ) -> str:
        """Create a signed access token.

        Args:
            claims: Must contain sub, email and role
            ttl: Lifetime as a duration string ("15m") or timedelta

        Returns:
            Encoded JWT string
        """
        missing = {"sub", "email", "role"} - set(claims)
        if missing:
            raise ValueError(f"Access token claims missing: {', '.join(sorted(missing))}")

        token, expires_at = self._encode(
            claims, ttl, self._access_secret, ACCESS_TOKEN_TYPE
        )
        logger.debug(
            "access_token_issued",
            user_id=str(claims["sub"]),
            expires_at=expires_at.isoformat(),
        )
        return token

    def issue_refresh_token(
        self, claims: dict[str, Any], ttl: Union[str, timedelta]
    ) -> tuple[str, datetime]:
        """Create a signed refresh token.

        Args:
            claims: Must contain sub
            ttl: Lifetime as a duration string ("7d") or timedelta

        Returns:
            Tuple of (encoded JWT, absolute expiry)
        """
        token, expires_at = self._encode(
            {"sub": claims.get("sub")}, ttl, self._refresh_secret, REFRESH_TOKEN_TYPE
        )
        logger.debug(
            "refresh_token_issued",
            user_id=str(claims["sub"]),
            expires_at=expires_at.isoformat(),
        )
        return token, expires_at

    def _decode(self, token: str, secret: str, token_type: str, label: str) -> dict:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError(f"{label} has expired")
        except jwt.InvalidTokenError as e:
            logger.info("token_rejected", kind=token_type, reason=type(e).__name__)
            raise UnauthorizedError(f"Invalid {label.lower()}")

        if payload.get("type") != token_type:
            raise UnauthorizedError(f"Invalid {label.lower()}")
        return payload

    def verify_access_token(self, token: str) -> dict:
        """Decode and validate an access token.

        Returns:
            Decoded payload with sub, email, role, type, jti, iat, exp

        Raises:
            UnauthorizedError: If the token is invalid, expired, or not an access token
        """
        return self._decode(token, self._access_secret, ACCESS_TOKEN_TYPE, "Access token")

    def verify_refresh_token(self, token: str) -> dict:
        """Decode and validate a refresh token's signature and expiry.

        Raises:
            UnauthorizedError: If the token is invalid, expired, or not a refresh token
        """
        return self._decode(token, self._refresh_secret, REFRESH_TOKEN_TYPE, "Refresh token")
