"""
Account directory consumed by the session core.

Two adapters implement the same contract:
- MemoryAccountStore: process-local dict, one lock, used in tests and dev
- SQLAccountStore: SQLAlchemy over DBStorage

The refresh-hash update is atomic per account in both. Passing `expected`
turns it into a compare-and-swap: the write lands only if the stored hash
still equals `expected`.
"""
from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import undefer

from models.account import Account, AccountRecord, normalize_email
from services.errors import Conflict, Unavailable

log = logging.getLogger(__name__)

# marker for an unconditional refresh-hash write
UNCONDITIONAL = object()


class AccountStore(ABC):
    """Interface of the account directory."""

    @abstractmethod
    def create(self, email: str, name: str, password_hash: str,
               avatar: str | None = None) -> AccountRecord:
        """Insert an account. Raises Conflict when the email is taken."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[AccountRecord]:
        """Look up by normalized email. refresh_token_hash is never populated."""

    @abstractmethod
    def find_by_id_with_refresh_hash(self, account_id: str) -> Optional[AccountRecord]:
        """Look up by id, including the normally hidden refresh_token_hash."""

    @abstractmethod
    def set_refresh_hash(self, account_id: str, value: str | None, expected=UNCONDITIONAL) -> bool:
        """
        Overwrite the account's refresh_token_hash with `value` (None clears it).
        Returns True when a row was written; with `expected` given, False means
        the stored hash no longer matched.
        """

    def ping(self) -> bool:
        return True


class MemoryAccountStore(AccountStore):
    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._accounts: Dict[str, AccountRecord] = {}
        self._by_email: Dict[str, str] = {}
        self._lock = threading.Lock()

    @contextmanager
    def _locked(self):
        if not self._lock.acquire(timeout=self.timeout):
            raise Unavailable("Account store timed out")
        try:
            yield
        finally:
            self._lock.release()

    def create(self, email, name, password_hash, avatar=None):
        email = normalize_email(email)
        with self._locked():
            if email in self._by_email:
                raise Conflict("Email already exists")
            record = AccountRecord(
                id=str(uuid.uuid4()),
                email=email,
                name=name,
                avatar=avatar,
                password_hash=password_hash,
            )
            self._accounts[record.id] = record
            self._by_email[email] = record.id
        return record

    def find_by_email(self, email):
        with self._locked():
            account_id = self._by_email.get(normalize_email(email))
            record = self._accounts.get(account_id) if account_id else None
        return replace(record, refresh_token_hash=None) if record else None

    def find_by_id_with_refresh_hash(self, account_id):
        with self._locked():
            return self._accounts.get(account_id)

    def set_refresh_hash(self, account_id, value, expected=UNCONDITIONAL):
        with self._locked():
            record = self._accounts.get(account_id)
            if record is None:
                return False
            if expected is not UNCONDITIONAL and record.refresh_token_hash != expected:
                return False
            self._accounts[account_id] = replace(record, refresh_token_hash=value)
        return True


class SQLAccountStore(AccountStore):
    def __init__(self, storage):
        self.storage = storage

    @contextmanager
    def _guard(self):
        """Translate backend failures into the error taxonomy."""
        try:
            yield self.storage.get_session()
        except (PoolTimeoutError, OperationalError) as exc:
            self.storage.rollback()
            log.warning("Account store unavailable: %s", exc)
            raise Unavailable("Account store unavailable") from exc

    def create(self, email, name, password_hash, avatar=None):
        email = normalize_email(email)
        with self._guard() as session:
            if session.query(Account.id).filter(Account.email == email).first():
                raise Conflict("Email already exists")
            account = Account(email=email, name=name, avatar=avatar, password_hash=password_hash)
            self.storage.new(account)
            try:
                self.storage.save()
            except IntegrityError as exc:
                # lost a race with a concurrent registration for the same email
                raise Conflict("Email already exists") from exc
            return account.to_record()

    def find_by_email(self, email):
        with self._guard() as session:
            account = (
                session.query(Account)
                .filter(Account.email == normalize_email(email))
                .execution_options(populate_existing=True)
                .first()
            )
            return account.to_record() if account else None

    def find_by_id_with_refresh_hash(self, account_id):
        with self._guard() as session:
            account = (
                session.query(Account)
                .options(undefer(Account.refresh_token_hash))
                .filter(Account.id == account_id)
                .execution_options(populate_existing=True)
                .first()
            )
            return account.to_record(with_refresh_hash=True) if account else None

    def set_refresh_hash(self, account_id, value, expected=UNCONDITIONAL):
        with self._guard() as session:
            query = session.query(Account).filter(Account.id == account_id)
            if expected is not UNCONDITIONAL:
                if expected is None:
                    query = query.filter(Account.refresh_token_hash.is_(None))
                else:
                    query = query.filter(Account.refresh_token_hash == expected)
            count = query.update({Account.refresh_token_hash: value}, synchronize_session=False)
            self.storage.save()
            return count == 1

    def ping(self):
        try:
            return self.storage.ping()
        except (PoolTimeoutError, OperationalError):
            return False
