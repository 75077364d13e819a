"""
RefreshSession model: one row per issued refresh token so we can revoke and rotate them.
Fields:
- token (opaque UUIDv4, unique) - the value handed to the client in a cookie
- user_id (String(36)) - FK to users.id, nulled when the account is deleted
- issued_at, expires_at, revoked_at, is_revoked
- user_agent, ip_address - client metadata, both optional

Rows are never deleted in normal operation; revocation only flips is_revoked.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from models.base_model import Base, BaseModel, utcnow

DEFAULT_EXPIRES_IN = timedelta(days=30)
MAX_USER_AGENT_LENGTH = 256


class RefreshSession(BaseModel, Base):
    __tablename__ = "refresh_sessions"

    token = Column(String(36), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)

    def __init__(self, *args, expires_in: timedelta = DEFAULT_EXPIRES_IN, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.token:
            self.token = str(uuid.uuid4())
        if self.issued_at is None:
            self.issued_at = utcnow()
        if self.expires_at is None:
            self.expires_at = self.issued_at + expires_in
        if self.is_revoked is None:
            self.is_revoked = False
        if self.user_agent:
            self.user_agent = self.user_agent[:MAX_USER_AGENT_LENGTH]

    def revoke(self, now: datetime | None = None) -> None:
        self.is_revoked = True
        self.revoked_at = now or utcnow()

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        """Valid iff not revoked and not yet expired; each condition is checked on its own."""
        return not self.is_revoked and not self.is_expired(now)

    def __repr__(self):
        return f"<RefreshSession id={self.id} user_id={self.user_id} revoked={self.is_revoked}>"
