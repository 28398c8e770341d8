from __future__ import annotations

import secrets
from dataclasses import dataclass

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError


def random_id(prefix: str = "", n: int = 24) -> str:
    # URL-safe token without padding.
    return f"{prefix}{secrets.token_urlsafe(n)}"


@dataclass(frozen=True, slots=True)
class PasswordHasher:
    """
    Thin wrapper around argon2-cffi's PasswordHasher.

    The salt is generated per call and embedded in the encoded hash, so the stored
    string is all that is needed to verify later.
    """

    time_cost: int = 2
    memory_cost: int = 65536
    parallelism: int = 4

    def _impl(self) -> _Argon2Hasher:
        return _Argon2Hasher(
            time_cost=self.time_cost, memory_cost=self.memory_cost, parallelism=self.parallelism
        )

    def hash(self, password: str) -> str:
        return self._impl().hash(password)

    def verify(self, hashed: str, password: str) -> bool:
        if not hashed or password is None:
            return False
        try:
            return bool(self._impl().verify(hashed, password))
        except (VerificationError, InvalidHashError):
            return False
