"""
Session service: register, login, refresh and logout as one protocol.

Each account holds at most one refresh secret, stored only as a hash on the
account row. Issuing a credential pair overwrites that hash, so every login
or refresh supersedes the previous session. A refresh secret that fails to
verify against the stored hash can only be a stale (already rotated) or
forged one, so it revokes the account's session outright.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from marshmallow import ValidationError

from models.account import AccountRecord, normalize_email
from models.account_store import UNCONDITIONAL, AccountStore
from services.audit import AuditLog
from services.errors import Forbidden, Unauthorized
from utils.security import Hasher, TokenIssuer

log = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Access denied - invalid refresh token"


@dataclass(frozen=True)
class SessionConfig:
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_bytes: int = 32
    password_min_length: int = 6
    guard_refresh_race: bool = True

    @property
    def expires_in(self) -> int:
        return int(self.access_token_ttl.total_seconds())

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "SessionConfig":
        """Build from a Flask-style config mapping, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            access_token_ttl=config.get("ACCESS_TOKEN_EXPIRES", defaults.access_token_ttl),
            refresh_token_bytes=int(config.get("REFRESH_TOKEN_BYTES", defaults.refresh_token_bytes)),
            password_min_length=int(config.get("PASSWORD_MIN_LENGTH", defaults.password_min_length)),
            guard_refresh_race=bool(config.get("GUARD_REFRESH_RACE", defaults.guard_refresh_race)),
        )


@dataclass(frozen=True)
class CredentialPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: Optional[AccountRecord] = None


class SessionService:
    def __init__(self, store: AccountStore, hasher: Hasher, issuer: TokenIssuer,
                 audit: AuditLog, config: SessionConfig | None = None):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.audit = audit
        self.config = config or SessionConfig()
        self._dummy_hash: str | None = None

    def register(self, email: str, name: str, password: str,
                 avatar: str | None = None) -> CredentialPair:
        email = normalize_email(email)
        self.audit.emit("register_attempt", "Registration attempt", email=email)
        try:
            if len(password or "") < self.config.password_min_length:
                raise ValidationError(
                    {"password": [f"Password must be at least {self.config.password_min_length} characters long."]}
                )
            account = self.store.create(email, name, self.hasher.hash(password), avatar=avatar)
            pair = self._issue(account, with_profile=True)
        except Exception as exc:
            self.audit.emit(
                "register_failed", "Registration failed", severity="warning",
                email=email, reason=_describe(exc),
            )
            raise

        self.audit.emit("register_success", "User registered successfully",
                        account_id=account.id, email=account.email)
        return pair

    def login(self, email: str, password: str) -> CredentialPair:
        email = normalize_email(email)
        self.audit.emit("login_attempt", "Login attempt", email=email)

        account = self.store.find_by_email(email)
        if account is None:
            # burn one verify so both failure paths cost the same
            self.hasher.verify(password, self._timing_hash())
            self.audit.emit(
                "login_failed", "Login failed - user not found", severity="warning",
                email=email, reason="user_not_found",
            )
            raise Unauthorized(INVALID_CREDENTIALS)

        if not self.hasher.verify(password, account.password_hash):
            self.audit.emit(
                "login_failed", "Login failed - invalid password", severity="warning",
                account_id=account.id, email=email, reason="invalid_password",
            )
            raise Unauthorized(INVALID_CREDENTIALS)

        pair = self._issue(account, with_profile=True)
        self.audit.emit("login_success", "User logged in successfully",
                        account_id=account.id, email=account.email)
        return pair

    def refresh(self, account_id: str, refresh_token: str) -> CredentialPair:
        """
        Exchange a refresh secret for a new pair, rotating the secret.

        With guard_refresh_race on, the rotation write is conditional on the
        stored hash still being the one just verified; a caller that loses
        that race is handled exactly like a reuse.
        """
        self.audit.emit("token_refresh_attempt", "Token refresh attempt",
                        severity="debug", account_id=account_id)

        account = self.store.find_by_id_with_refresh_hash(account_id)
        if account is None or not account.refresh_token_hash:
            self.audit.emit(
                "token_refresh_failed", "Token refresh failed - no valid refresh token",
                severity="warning", account_id=account_id, reason="no_refresh_token",
            )
            raise Forbidden(INVALID_REFRESH_TOKEN)

        if not self.hasher.verify(refresh_token or "", account.refresh_token_hash):
            self._revoke_on_reuse(account_id, detail="hash_mismatch")
            raise Forbidden(INVALID_REFRESH_TOKEN)

        expected = account.refresh_token_hash if self.config.guard_refresh_race else UNCONDITIONAL
        pair = self._issue(account, with_profile=False, expected=expected)
        if pair is None:
            self._revoke_on_reuse(account_id, detail="concurrent_rotation")
            raise Forbidden(INVALID_REFRESH_TOKEN)

        self.audit.emit("token_refresh_success", "Tokens refreshed successfully",
                        account_id=account_id)
        return pair

    def logout(self, account_id: str) -> Dict[str, str]:
        """Clear the session pointer. Idempotent: succeeds with or without a live session."""
        self.audit.emit("logout_attempt", "Logout initiated", account_id=account_id)
        self.store.set_refresh_hash(account_id, None)
        self.audit.emit("logout_success", "User logged out successfully", account_id=account_id)
        return {"message": "Successfully logged out"}

    def _issue(self, account: AccountRecord, with_profile: bool,
               expected=UNCONDITIONAL) -> Optional[CredentialPair]:
        """Mint an access token and a fresh refresh secret, persisting only the
        secret's hash. Returns None when a conditional write lost."""
        access_token = self.issuer.mint(
            {"sub": str(account.id), "email": account.email}, self.config.access_token_ttl
        )
        refresh_token = self.issuer.random_secret(self.config.refresh_token_bytes)

        written = self.store.set_refresh_hash(account.id, self.hasher.hash(refresh_token), expected=expected)
        if expected is not UNCONDITIONAL and not written:
            return None

        self.audit.emit("tokens_generated", "Auth tokens generated",
                        severity="debug", account_id=account.id)
        return CredentialPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.config.expires_in,
            user=account if with_profile else None,
        )

    def _revoke_on_reuse(self, account_id: str, detail: str) -> None:
        self.store.set_refresh_hash(account_id, None)
        self.audit.emit(
            "token_refresh_failed", "Token refresh failed - possible token reuse attack",
            severity="critical", account_id=account_id, reason="token_reuse_attack", detail=detail,
        )

    def _timing_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(secrets.token_hex(16))
        return self._dummy_hash


def _describe(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
