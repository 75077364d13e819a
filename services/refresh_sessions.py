"""
Refresh session store: persistence of opaque refresh tokens.

Rotation is the one operation here with a race to worry about. Two requests
redeeming the same refresh token must not both get a new one, so the old row
is revoked with a conditional UPDATE and only the request whose UPDATE hit
the row goes on to insert the replacement, all inside one transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from models.base_model import utcnow
from models.refresh_session import RefreshSession, DEFAULT_EXPIRES_IN
from services.errors import Unauthorized

logger = logging.getLogger(__name__)


class RefreshSessionStore:
    def __init__(self, expires_in: timedelta = DEFAULT_EXPIRES_IN):
        self.expires_in = expires_in

    def create(self, user_id: str, user_agent: Optional[str] = None,
               ip_address: Optional[str] = None) -> RefreshSession:
        rs = self._build(user_id, user_agent, ip_address)
        storage.new(rs)
        storage.save()
        logger.debug("Refresh session %s created for user %s from %s",
                     rs.id, user_id, ip_address or "unknown IP")
        return rs

    def _build(self, user_id, user_agent, ip_address) -> RefreshSession:
        return RefreshSession(
            user_id=user_id,
            user_agent=user_agent,
            ip_address=ip_address,
            expires_in=self.expires_in,
        )

    def find_by_token(self, token: str) -> Optional[RefreshSession]:
        if not token:
            return None
        session = storage.get_session()
        return session.query(RefreshSession).filter(RefreshSession.token == token).first()

    def find_valid(self, token: str) -> RefreshSession:
        rs = self.find_by_token(token)
        if rs is None:
            logger.warning("Refresh token not found")
            raise Unauthorized()
        if not rs.is_valid():
            logger.warning("Refresh session %s is expired or revoked", rs.id)
            raise Unauthorized()
        return rs

    def _revoke_where(self, *criteria) -> int:
        now = utcnow()
        session = storage.get_session()
        result = session.execute(
            update(RefreshSession)
            .where(RefreshSession.is_revoked.is_(False), *criteria)
            .values(is_revoked=True, revoked_at=now)
            .execution_options(synchronize_session="fetch")
        )
        storage.save()
        return result.rowcount or 0

    def revoke(self, token: str) -> bool:
        """Revoke by token value. Returns False when missing or already revoked."""
        if not token:
            return False
        revoked = self._revoke_where(RefreshSession.token == token) == 1
        if revoked:
            logger.info("Refresh session for token %s... revoked", token[:8])
        return revoked

    def revoke_by_id(self, session_id: str) -> bool:
        if not session_id:
            return False
        revoked = self._revoke_where(RefreshSession.id == session_id) == 1
        if revoked:
            logger.info("Refresh session %s revoked", session_id)
        return revoked

    def revoke_all_for_user(self, user_id: str) -> int:
        count = self._revoke_where(RefreshSession.user_id == user_id)
        logger.info("%d refresh sessions revoked for user %s", count, user_id)
        return count

    def rotate(self, token: str, user_agent: Optional[str] = None,
               ip_address: Optional[str] = None) -> RefreshSession:
        """
        Single-use redemption: revoke the session behind `token` and issue its
        replacement atomically. Raises Unauthorized if the token is unknown,
        expired, or was already used (including by a concurrent call).
        """
        if not token:
            raise Unauthorized()
        session = storage.get_session()
        now = utcnow()
        try:
            result = session.execute(
                update(RefreshSession)
                .where(
                    RefreshSession.token == token,
                    RefreshSession.is_revoked.is_(False),
                    RefreshSession.expires_at > now,
                )
                .values(is_revoked=True, revoked_at=now)
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount != 1:
                session.rollback()
                logger.warning("Refresh token %s... rejected: unknown, expired or already used", token[:8])
                raise Unauthorized()

            old = session.query(RefreshSession).filter(RefreshSession.token == token).one()
            if old.user_id is None:
                session.rollback()
                raise Unauthorized()
            new = self._build(old.user_id, user_agent, ip_address)
            session.add(new)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        logger.info("Refresh session %s rotated to %s for user %s", old.id, new.id, new.user_id)
        return new

    def list_active_for_user(self, user_id: str) -> List[RefreshSession]:
        session = storage.get_session()
        return (
            session.query(RefreshSession)
            .filter(
                RefreshSession.user_id == user_id,
                RefreshSession.is_revoked.is_(False),
                RefreshSession.expires_at > utcnow(),
            )
            .order_by(RefreshSession.issued_at.desc())
            .all()
        )

    def revoke_expired(self, now: Optional[datetime] = None) -> int:
        """Mark sessions past their expiry as revoked (maintenance job)."""
        cutoff = now or utcnow()
        count = self._revoke_where(RefreshSession.expires_at <= cutoff)
        logger.debug("Revoked %d expired refresh sessions", count)
        return count
