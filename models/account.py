"""
Account model: identity record plus the session pointer.

refresh_token_hash is the salted hash of the one outstanding refresh secret;
NULL means no live session. The column is deferred so ordinary reads do not
load it, and AccountRecord snapshots leave it out unless asked for.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import deferred

from models.base_model import Base, BaseModel


def normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


class Account(BaseModel, Base):
    __tablename__ = "accounts"

    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=True)
    password_hash = Column(String(255), nullable=False)
    refresh_token_hash = deferred(Column(String(255), nullable=True))
    is_active = Column(Boolean, nullable=False, default=True)

    def to_record(self, with_refresh_hash: bool = False) -> "AccountRecord":
        return AccountRecord(
            id=self.id,
            email=self.email,
            name=self.name,
            avatar=self.avatar,
            password_hash=self.password_hash,
            is_active=bool(self.is_active),
            refresh_token_hash=self.refresh_token_hash if with_refresh_hash else None,
        )


@dataclass(frozen=True)
class AccountRecord:
    """Detached snapshot of an account as handed to the session core."""

    id: str
    email: str
    name: str
    password_hash: str
    avatar: Optional[str] = None
    is_active: bool = True
    refresh_token_hash: Optional[str] = None
