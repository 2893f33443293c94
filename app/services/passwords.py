"""Password hashing service."""

import bcrypt

from app.config import get_settings


class PasswordHasher:
    """Salted bcrypt hashing. Each call to ``hash`` uses a fresh salt."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        """Hash a password with bcrypt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode("utf-8"), salt).decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Verify a password against its hash. Returns False on mismatch or malformed hash."""
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Run a verification against a throwaway hash. Always returns False."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password-for-timing")
        self.verify(plaintext, self._dummy_hash)
        return False


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)
    return _password_hasher
