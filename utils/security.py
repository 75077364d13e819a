"""
security helpers:
- Argon2 password hashing via argon2-cffi (credential verifier)
- Access token creation/verification via PyJWT (token codec)
- JTI generation for token identifiers

Decoding never raises: callers get None for anything that is not a
well-formed token signed with our secret.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()

ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    if not password or not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(password_hash: str) -> bool:
    """True when the hash was produced with parameters older than ours."""
    try:
        return ph.check_needs_rehash(password_hash)
    except InvalidHashError:
        return True


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Signs and verifies short-lived access tokens with a server secret."""

    def __init__(self, secret: str, algorithm: str = "HS256",
                 expires_in: timedelta = timedelta(hours=1), issuer: str = "chat-auth-api"):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in
        self.issuer = issuer

    @classmethod
    def from_config(cls, config) -> "TokenCodec":
        return cls(
            secret=config["JWT_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            expires_in=config.get("ACCESS_TOKEN_EXPIRES", timedelta(hours=1)),
        )

    def encode(self, subject: str, session_id: Optional[str] = None,
               now: Optional[datetime] = None) -> str:
        """Mint an access token for `subject`, bound to a refresh session when given."""
        issued = now or _now()
        payload = {
            "iss": self.issuer,
            "sub": str(subject),
            "iat": int(issued.timestamp()),
            "exp": int((issued + self.expires_in).timestamp()),
            "type": ACCESS_TOKEN_TYPE,
            "jti": generate_jti(),
        }
        if session_id:
            payload["sid"] = session_id
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def _decode(self, token: str, verify_exp: bool) -> Optional[Dict[str, Any]]:
        if not token or not isinstance(token, str):
            return None
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS, "verify_exp": verify_exp},
            )
        except jwt.PyJWTError:
            return None
        if decoded.get("type") != ACCESS_TOKEN_TYPE:
            return None
        return decoded

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify signature and expiry; return the claims, or None for an
        expired, forged or malformed token.
        """
        return self._decode(token, verify_exp=True)

    def unverified_claims(self, token: str) -> Optional[Dict[str, Any]]:
        """Signature-checked claims, ignoring expiry (logout of a stale token)."""
        return self._decode(token, verify_exp=False)

    def expiry_of(self, token: str) -> Optional[datetime]:
        """The token's own `exp` as an aware UTC datetime, or None if unparseable."""
        claims = self.unverified_claims(token)
        if claims is None:
            return None
        try:
            return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None
