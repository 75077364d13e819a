"""
Credential extraction, one function per place a token can arrive from.
These only find the raw string; verification lives in services.authenticator.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

BEARER_PREFIX = "Bearer "


def _strip_bearer(value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if value.startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    return value or None


def token_from_authorization_header(header: Optional[str]) -> Optional[str]:
    """`Authorization: Bearer <token>` -> token; anything else -> None."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):].strip() or None


def extract_access_token(request, cookie_name: str) -> Optional[str]:
    """HTTP: the Authorization header wins, the access cookie is the fallback."""
    token = token_from_authorization_header(request.headers.get("Authorization"))
    if token:
        return token
    return request.cookies.get(cookie_name) or None


def extract_refresh_token(request, cookie_name: str) -> Optional[str]:
    """Refresh tokens are only ever accepted from their cookie."""
    return request.cookies.get(cookie_name) or None


def extract_handshake_token(auth: Optional[Mapping[str, Any]] = None,
                            headers: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Connection handshake: an Authorization header first, then the `token`
    field of the handshake auth payload (with or without a Bearer prefix).
    """
    if headers:
        header = headers.get("Authorization") or headers.get("authorization")
        token = token_from_authorization_header(header)
        if token:
            return token
    if auth:
        return _strip_bearer(auth.get("token"))
    return None
