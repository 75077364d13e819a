"""
Real-time connection gateway: authenticates a persistent connection at
handshake time, before any protocol message is exchanged, and keeps track of
who is connected.

Transport-agnostic: the socket server hands over the handshake auth payload
and headers, and disconnects the client when ConnectionRejected is raised.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from services.authenticator import Principal, RequestAuthenticator
from services.errors import Unauthorized
from utils.extractors import extract_handshake_token

logger = logging.getLogger(__name__)


class ConnectionRejected(Unauthorized):
    default_message = "Connection rejected"


class ConnectionGateway:
    def __init__(self, authenticator: RequestAuthenticator):
        self.authenticator = authenticator
        self._connections: Dict[str, Principal] = {}
        self._lock = threading.Lock()

    def handle_connection(self, connection_id: str, auth: Optional[Mapping[str, Any]] = None,
                          headers: Optional[Mapping[str, str]] = None) -> Principal:
        token = extract_handshake_token(auth, headers)
        if not token:
            logger.warning("No token in handshake, rejecting connection %s", connection_id)
            raise ConnectionRejected()
        try:
            principal = self.authenticator.authenticate(token)
        except Unauthorized:
            logger.warning("Invalid token in handshake, rejecting connection %s", connection_id)
            raise ConnectionRejected()

        with self._lock:
            self._connections[connection_id] = principal
        logger.debug("Connection %s authenticated as user %s", connection_id, principal.user_id)
        return principal

    def handle_disconnect(self, connection_id: str) -> Optional[Principal]:
        with self._lock:
            principal = self._connections.pop(connection_id, None)
        if principal is None:
            logger.debug("Unauthenticated connection %s disconnected", connection_id)
        else:
            logger.debug("User %s disconnected (%s)", principal.user_id, connection_id)
        return principal

    def principal_for(self, connection_id: str) -> Optional[Principal]:
        with self._lock:
            return self._connections.get(connection_id)

    def connections_for_user(self, user_id: str) -> List[str]:
        with self._lock:
            return [cid for cid, p in self._connections.items() if p.user_id == user_id]
