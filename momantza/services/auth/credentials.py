from __future__ import annotations

import hmac
import logging

import bcrypt

from momantza.core.errors import MalformedHashError


logger = logging.getLogger(__name__)

# bcrypt hashes start with "$2" ($2a$, $2b$, $2y$).
ADAPTIVE_HASH_MARKER = "$2"
DEFAULT_ROUNDS = 12


class CredentialVerifier:
    """bcrypt hashing and verification, plus legacy plaintext detection."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._rounds = rounds

    @staticmethod
    def is_adaptive_hash(stored: str | None) -> bool:
        return bool(stored) and stored.startswith(ADAPTIVE_HASH_MARKER)

    @classmethod
    def is_legacy(cls, stored: str | None) -> bool:
        # A non-empty value that is not hash-shaped predates enforced hashing.
        return bool(stored) and not cls.is_adaptive_hash(stored)

    @staticmethod
    def matches_legacy(secret: str, stored: str | None) -> bool:
        if not secret or not stored:
            return False
        return hmac.compare_digest(secret.encode("utf-8"), stored.encode("utf-8"))

    def hash(self, secret: str) -> str:
        return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, secret: str, stored: str | None) -> bool:
        # Values that are not hash-shaped are never verifiable here.
        if not secret or not self.is_adaptive_hash(stored):
            return False
        try:
            return self._checkpw(secret, stored or "")
        except MalformedHashError:
            logger.warning("credential_hash_malformed")
            return False

    @staticmethod
    def _checkpw(secret: str, stored: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), stored.encode("utf-8"))
        except ValueError as exc:
            raise MalformedHashError("stored hash could not be parsed") from exc
