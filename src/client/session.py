"""
Client session context
Holds the bearer token handed out by the authentication service.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Token holder passed to clients as their credential provider.

    Clients call the instance (or ``get_token``) before every request, so
    a token refreshed elsewhere is picked up by the next attempt.
    """

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self._lock = threading.Lock()

    def __call__(self) -> Optional[str]:
        return self.get_token()

    @property
    def is_authenticated(self) -> bool:
        return self.get_token() is not None

    def get_token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def set_token(self, token: str) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        """Forget the token, e.g. after the server answered 401."""
        with self._lock:
            self._token = None
        logger.info("Session cleared")
