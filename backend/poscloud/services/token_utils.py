# Overview: Override token generation, normalization, and hashing.

"""
Override Token Primitives

Override tokens are read aloud by a supervisor and typed by a cashier, so
they use a short alphabet without look-alike characters (no I, O, 0, 1)
and are compared after normalization: "abcd-1234 x" and "ABCD1234X" are
the same token.

SECURITY:
- Tokens are drawn from a CSPRNG (secrets.SystemRandom)
- Only the SHA-256 hash of the normalized token is persisted
- The plaintext is returned to the approver exactly once
"""

from __future__ import annotations

import hashlib
import random
import re
import secrets


TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TOKEN_LENGTH = 10
NONCE_LENGTH = 8

_SEPARATORS = re.compile(r"[\s-]+")


def normalize_override_token(token: str) -> str:
    """Strip whitespace and hyphens, uppercase."""
    return _SEPARATORS.sub("", token.strip()).upper()


def hash_override_token(token: str) -> str:
    """SHA-256 hex digest of the normalized token."""
    return hashlib.sha256(normalize_override_token(token).encode("utf-8")).hexdigest()


class TokenGenerator:
    """
    Source of plaintext tokens and nonces.

    Each instance owns its random source. Production code uses a fresh
    SystemRandom; tests pass a seeded random.Random for reproducible tokens.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng if rng is not None else secrets.SystemRandom()

    def _draw(self, length: int) -> str:
        return "".join(self._rng.choice(TOKEN_ALPHABET) for _ in range(length))

    def token(self, length: int = TOKEN_LENGTH) -> str:
        return self._draw(length)

    def nonce(self, length: int = NONCE_LENGTH) -> str:
        return self._draw(length)

    def secret_bytes(self, size: int) -> bytes:
        return bytes(self._rng.randrange(256) for _ in range(size))
