"""Identity registration, login and token verification."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger

from .exceptions import NotFoundError, ValidationError
from .passwords import PasswordHasher
from .storage import UserRepository
from .tokens import TokenClaims, TokenIssuer
from .types import UserRecord


@dataclass(frozen=True)
class AuthResult:
    """A freshly issued token and the identity it belongs to."""

    token: str
    user: UserRecord


class AccountService:
    """Account operations built on stateless bearer tokens."""

    def __init__(
        self,
        repository: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
    ) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.hasher = hasher
        self.tokens = tokens

    async def signup(self, username: str, email: str, password: str) -> AuthResult:
        """Register a new identity and log it in.

        Raises:
            ValidationError: If the username or email is already taken.
        """
        existing = await self.repository.find_user_by_username_or_email(username, email)
        if existing:
            raise ValidationError("User already exists")

        loop = asyncio.get_event_loop()
        password_hash = await loop.run_in_executor(None, self.hasher.hash, password)

        now = datetime.now(UTC)
        user: UserRecord = {
            "id": uuid.uuid4().hex,
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "created_at": now,
            "updated_at": now,
        }
        await self.repository.create_user(user)
        logger.info("User signed up", user_id=user["id"], username=username)

        return AuthResult(token=self.tokens.issue(user["id"], username), user=user)

    async def login(self, email: str, password: str) -> AuthResult:
        """Exchange credentials for a token.

        Raises:
            ValidationError: If the email is unknown or the password is wrong.
        """
        user = await self.repository.find_user_by_email(email)
        if user is None:
            raise ValidationError("Invalid credentials")

        loop = asyncio.get_event_loop()
        matches = await loop.run_in_executor(
            None, self.hasher.verify, password, user["password_hash"]
        )
        if not matches:
            logger.info("Failed login attempt", user_id=user["id"])
            raise ValidationError("Invalid credentials")

        return AuthResult(token=self.tokens.issue(user["id"], user["username"]), user=user)

    async def verify(self, claims: TokenClaims) -> UserRecord:
        """Resolve verified token claims to the stored identity.

        Raises:
            NotFoundError: If the identity no longer exists.
        """
        user = await self.repository.get_user(claims.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def logout(self) -> None:
        """Tokens are stateless, so there is nothing to revoke server-side."""
        return None
