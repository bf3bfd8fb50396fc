"""Password hashing with bcrypt."""

import bcrypt

from .exceptions import ValidationError

# bcrypt silently ignores (or, in newer releases, refuses) input past 72 bytes.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """One-way salted hashing of passwords.

    The work factor is tunable through ``rounds``; every increment doubles the
    cost of both hashing and verification.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Return a salted bcrypt digest for ``password``.

        Raises:
            ValidationError: If the password exceeds bcrypt's input limit.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password is too long (max {MAX_PASSWORD_BYTES} bytes)")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    def verify(self, password: str, digest: str) -> bool:
        """Check ``password`` against a stored digest.

        A malformed digest verifies as ``False`` instead of raising.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, digest.encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            return False
