import itertools

import pytest

from api import create_app
from models.account_store import MemoryAccountStore
from services.audit import AuditLog
from services.session_service import SessionConfig, SessionService
from utils.security import Hasher, TokenIssuer


class RecordingAuditLog(AuditLog):
    """Keeps events in memory instead of shipping them to the audit logger."""

    def __init__(self):
        super().__init__()
        self.events = []

    def write(self, entry):
        self.events.append(entry)

    def named(self, event):
        return [e for e in self.events if e.event == event]

    def reasons(self, event):
        return [e.reason for e in self.named(event)]


def sequential_bytes():
    """Deterministic stand-in for secrets.token_bytes: each call returns the next counter value."""
    counter = itertools.count(1)

    def source(n):
        return next(counter).to_bytes(n, "big")

    return source


@pytest.fixture
def audit():
    return RecordingAuditLog()


@pytest.fixture
def hasher():
    return Hasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def issuer():
    return TokenIssuer("unit-test-secret", issuer="session-auth-api", random_source=sequential_bytes())


@pytest.fixture
def memory_store():
    return MemoryAccountStore(timeout=1.0)


@pytest.fixture
def make_service(hasher, issuer, audit, memory_store):
    def factory(store=None, config=None, audit_log=None):
        return SessionService(
            store or memory_store,
            hasher,
            issuer,
            audit_log or audit,
            config or SessionConfig(),
        )

    return factory


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def app(audit):
    return create_app("testing", audit=audit)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    return app.extensions["account_store"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
