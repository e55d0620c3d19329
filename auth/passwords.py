"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection feeds bcrypt 4.x a password longer than 72 bytes, which it rejects.

bcrypt only ever looked at the first 72 bytes of input, and current bcrypt
releases raise instead of truncating. _encode() truncates explicitly, in both
hash() and verify(), so long passwords keep working and keep matching.

The cost factor is a constructor argument (BCRYPT_ROUNDS in config, default
12). Tests build a hasher with rounds=4 so the suite stays fast.

Timing equalization: dummy_verify() runs a full bcrypt check against a hash
computed once per hasher, so a login for an unknown username costs the same
as a wrong password.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

_BCRYPT_MAX_BYTES = 72
_DUMMY_PASSWORD = "loginsvc_timing_dummy"


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """One-way password transform with a matching verify.

    Only the first 72 UTF-8 bytes of a password are significant: two
    passwords sharing that prefix verify against each other's hash.
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        self._dummy_hash = self.hash(_DUMMY_PASSWORD)

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        if not plain:
            raise ValueError("Cannot hash an empty password")
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if plain matches hashed. Malformed hashes yield False."""
        if not plain or not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            return False

    def dummy_verify(self, plain: str) -> None:
        self.verify(plain or _DUMMY_PASSWORD, self._dummy_hash)
