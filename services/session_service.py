"""
Session service: sign-up, login, refresh (rotation), logout, account
deletion and password change.

Two kinds of credential are issued together:
- a signed access token, verified without a database hit on every request;
- an opaque refresh session, persisted so it can be revoked by lookup.
The access token carries the id of its refresh session (`sid`) so logout can
end both.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from models import storage
from models.refresh_session import RefreshSession
from models.user import User
from services.errors import Conflict, Unauthorized
from services.refresh_sessions import RefreshSessionStore
from services.revocation import RevocationRegistry
from utils.security import TokenCodec, hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)


@dataclass
class IssuedCredentials:
    access_token: str
    refresh_session: RefreshSession
    user: User


class SessionService:
    def __init__(self, codec: TokenCodec, registry: RevocationRegistry,
                 refresh_sessions: RefreshSessionStore):
        self.codec = codec
        self.registry = registry
        self.refresh_sessions = refresh_sessions

    # users

    def get_user(self, user_id: str) -> Optional[User]:
        return storage.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        session = storage.get_session()
        return session.query(User).filter(User.email == email.strip().lower()).first()

    def sign_up(self, email: str, password: str, nickname: str,
                image_url: Optional[str] = None) -> User:
        email = email.strip().lower()
        if self.get_user_by_email(email):
            raise Conflict("User with this email already exists")

        user = User(
            email=email,
            password_hash=hash_password(password),
            nickname=nickname,
            image_url=image_url,
        )
        storage.new(user)
        try:
            storage.save()
        except IntegrityError:
            # Lost a race against a concurrent sign-up with the same email
            raise Conflict("User with this email already exists")
        logger.info("User %s signed up", user.id)
        return user

    # credentials

    def _authenticate_password(self, user: Optional[User], password: str) -> User:
        if user is None or not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid credentials")
        return user

    def _issue(self, user: User, refresh_session: RefreshSession) -> IssuedCredentials:
        access_token = self.codec.encode(user.id, session_id=refresh_session.id)
        return IssuedCredentials(access_token=access_token, refresh_session=refresh_session, user=user)

    def login(self, email: str, password: str, user_agent: Optional[str] = None,
              ip_address: Optional[str] = None) -> IssuedCredentials:
        try:
            user = self._authenticate_password(self.get_user_by_email(email), password)
        except Unauthorized:
            logger.warning("Failed login attempt from %s", ip_address or "unknown IP")
            raise

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
            user.save()

        refresh_session = self.refresh_sessions.create(user.id, user_agent, ip_address)
        logger.info("User %s logged in", user.id)
        return self._issue(user, refresh_session)

    def refresh(self, refresh_token: str, user_agent: Optional[str] = None,
                ip_address: Optional[str] = None) -> IssuedCredentials:
        """Redeem a refresh token exactly once for a new access token and refresh session."""
        refresh_session = self.refresh_sessions.rotate(refresh_token, user_agent, ip_address)
        user = self.get_user(refresh_session.user_id)
        if user is None:
            self.refresh_sessions.revoke_by_id(refresh_session.id)
            raise Unauthorized()
        return self._issue(user, refresh_session)

    def logout(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        """
        Blacklist the access token and end its refresh session. Safe to call
        repeatedly and with garbage: nothing here raises for a bad token.
        """
        self.registry.blacklist(access_token)

        if refresh_token:
            self.refresh_sessions.revoke(refresh_token)
            return
        claims = self.codec.unverified_claims(access_token)
        if claims and claims.get("sid"):
            self.refresh_sessions.revoke_by_id(claims["sid"])

    def delete_account(self, user_id: str, password: str) -> bool:
        user = self._authenticate_password(self.get_user(user_id), password)
        # Sessions are revoked before the user row is deleted (FK is SET NULL)
        self.refresh_sessions.revoke_all_for_user(user.id)
        user.delete()
        storage.save()
        logger.info("User %s deleted their account", user_id)
        return True

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self._authenticate_password(self.get_user(user_id), current_password)
        user.password_hash = hash_password(new_password)
        user.save()
        self.refresh_sessions.revoke_all_for_user(user.id)
        logger.info("User %s changed their password", user_id)

    def active_sessions(self, user_id: str) -> List[RefreshSession]:
        return self.refresh_sessions.list_active_for_user(user_id)
