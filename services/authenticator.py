"""
Request authenticator shared by HTTP routes and the connection handshake.

Token extraction differs per transport (see utils.extractors); everything
after that happens in RequestAuthenticator.authenticate so the two paths
cannot drift apart.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models import storage
from models.user import User
from services.errors import Unauthorized
from services.revocation import RevocationRegistry
from utils.security import TokenCodec

logger = logging.getLogger(__name__)


@dataclass
class Principal:
    """An authenticated caller."""
    user: User
    token: str
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def session_id(self) -> Optional[str]:
        return self.claims.get("sid")


class RequestAuthenticator:
    def __init__(self, codec: TokenCodec, registry: RevocationRegistry):
        self.codec = codec
        self.registry = registry

    def authenticate(self, token: Optional[str]) -> Principal:
        """
        Verify signature and expiry, reject blacklisted tokens, resolve the
        subject. Every failure is the same Unauthorized.
        """
        if not token:
            raise Unauthorized()

        claims = self.codec.decode(token)
        if claims is None:
            logger.debug("Rejected access token: invalid signature, claims or expiry")
            raise Unauthorized()

        if self.registry.is_blacklisted(token):
            logger.debug("Rejected access token: blacklisted")
            raise Unauthorized()

        user = storage.get(User, claims["sub"])
        if user is None:
            logger.debug("Rejected access token: unknown subject")
            raise Unauthorized()
        return Principal(user=user, token=token, claims=claims)
