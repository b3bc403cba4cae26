"""
security helpers:
- Hasher: Argon2 salted hashing via argon2-cffi, used for passwords and
  for refresh secrets at rest
- TokenIssuer: access-token signing/verification via PyJWT, and opaque
  refresh secrets from a cryptographically secure random source
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from services.errors import Fatal


class Hasher:
    """Adaptive salted hashing. hash() is non-deterministic, verify() is stable."""

    def __init__(self, time_cost: int | None = None, memory_cost: int | None = None,
                 parallelism: int | None = None):
        params = {
            "time_cost": time_cost,
            "memory_cost": memory_cost,
            "parallelism": parallelism,
        }
        self._ph = PasswordHasher(**{k: v for k, v in params.items() if v is not None})

    def hash(self, secret: str) -> str:
        """Hash a plaintext secret using Argon2
        """
        return self._ph.hash(secret)

    def verify(self, secret: str, hash_text: str | None) -> bool:
        """ Verify a plaintext secret against a stored Argon2 hash
        """
        if not hash_text:
            return False
        try:
            return self._ph.verify(hash_text, secret)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            # malformed hash in storage counts as a mismatch
            return False


class TokenError(Exception):
    """Raised when an access token is invalid, expired, or of the wrong type."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """
    Signs short-lived access tokens and generates refresh secrets.

    random_source takes a byte count and returns that many random bytes;
    it defaults to secrets.token_bytes and is only swapped out in tests.
    """

    def __init__(self, secret_key: str | None, algorithm: str = "HS256",
                 issuer: str = "session-auth-api",
                 random_source: Callable[[int], bytes] | None = None):
        if not secret_key:
            raise Fatal("JWT signing key is not configured")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.random_source = random_source or secrets.token_bytes
        try:
            probe = self.random_source(16)
        except (OSError, NotImplementedError) as exc:
            raise Fatal(f"secure random source unavailable: {exc}") from exc
        if not isinstance(probe, bytes) or len(probe) != 16:
            raise Fatal("secure random source returned an unexpected value")

    def mint(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        """Sign `claims` into an access token valid for `ttl`."""
        now = _now()
        payload = dict(claims)
        payload.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "type": "access",
                "jti": secrets.token_hex(8),
            }
        )
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str, expected_type: str = "access") -> Dict[str, Any]:
        """
        Decode and validate an access token. Validity is signature + expiry
        (+ issuer and type); no storage lookup is involved.
        """
        try:
            decoded = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token expired")
        except jwt.InvalidTokenError as exc:
            raise TokenError(f"Invalid token: {exc}")

        if decoded.get("type") != expected_type:
            raise TokenError("Wrong token type")
        return decoded

    def random_secret(self, byte_length: int) -> str:
        """Opaque hex secret carrying byte_length bytes of entropy."""
        return self.random_source(byte_length).hex()
