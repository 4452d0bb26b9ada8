"""
    Password hashing strategies used by the user repository.
"""
import hashlib
import hmac

import bcrypt


class PasswordHasher:
    """Base class for one-way credential transforms."""

    def hash(self, password: str) -> str:
        raise NotImplementedError

    def verify(self, password: str, hashed: str) -> bool:
        raise NotImplementedError


class Sha256PasswordHasher(PasswordHasher):
    """Unsalted SHA-256 hex digest; the format existing accounts are stored in."""

    def hash(self, password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def verify(self, password: str, hashed: str) -> bool:
        return hmac.compare_digest(self.hash(password).encode("utf-8"), hashed.encode("utf-8"))


class BcryptPasswordHasher(PasswordHasher):
    """Salted bcrypt hashes."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Not a bcrypt hash (e.g. a legacy digest)
            return False


default_hasher = Sha256PasswordHasher()
