"""Issuing and verifying signed bearer tokens."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from .exceptions import ExpiredTokenError, InvalidTokenError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current wall-clock time in UTC."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a verified token."""

    user_id: str
    username: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Create and validate HMAC-signed JWTs with a fixed lifetime.

    Tokens are never stored; validity is decided by the signature and the
    ``exp`` claim alone.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl
        self.clock = clock

    def issue(self, user_id: str, username: str) -> str:
        """Create a signed token for an identity.

        Args:
            user_id: Identity reference stored in the ``sub`` claim.
            username: Public handle of the identity.

        Returns:
            Encoded JWT token as string.
        """
        issued_at = self.clock()
        payload = {
            "sub": user_id,
            "username": username,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
            "jti": uuid.uuid4().hex,
        }
        token: str = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry, returning the embedded claims.

        Expiry is compared against the clock at the moment of the call.

        Raises:
            InvalidTokenError: If the signature or structure is bad.
            ExpiredTokenError: If the token is past its ``exp`` claim.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise InvalidTokenError() from e

        user_id = payload.get("sub")
        expires = payload.get("exp")
        if not isinstance(user_id, str) or not isinstance(expires, int | float):
            raise InvalidTokenError()

        expires_at = datetime.fromtimestamp(expires, UTC)
        if self.clock() >= expires_at:
            raise ExpiredTokenError()

        issued = payload.get("iat")
        issued_at = (
            datetime.fromtimestamp(issued, UTC) if isinstance(issued, int | float) else expires_at - self.ttl
        )
        return TokenClaims(
            user_id=user_id,
            username=str(payload.get("username", "")),
            issued_at=issued_at,
            expires_at=expires_at,
        )
