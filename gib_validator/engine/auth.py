# Path: gib_validator/engine/auth.py
"""
Admin Authentication

Bearer-token contract guarding the mutating administration operations.

Architecture:
- One admin account taken from configuration
- Opaque UUID tokens held in memory with an expiry
- Failed logins are counted per user in a sliding window; too many lock the user out
- Passwords are compared in constant time
"""

import hmac
import threading
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Optional

from gib_validator.core.logger import get_logger
from gib_validator.exceptions import ConfigurationError, TooManyAttemptsError, UnauthorizedError
from gib_validator.constants import (
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_TOKEN_EXPIRY_HOURS,
    LOCKOUT_WINDOW_MINUTES,
    MAX_FAILED_LOGINS,
    PRODUCTION_ENVIRONMENT,
)

logger = get_logger(__name__, 'engine')


class AuthService:
    """
    Example:
        auth = AuthService('admin', 's3cret')
        token = auth.login('admin', 's3cret')
        auth.require(token)
    """

    def __init__(
        self,
        username: str,
        password: str,
        token_expiry_hours: int = DEFAULT_TOKEN_EXPIRY_HOURS,
        environment: str = 'development',
        clock: Callable[[], datetime] = datetime.now
    ):
        if environment == PRODUCTION_ENVIRONMENT and password == DEFAULT_ADMIN_PASSWORD:
            raise ConfigurationError(
                "Default admin password must be changed in production (set GIB_ADMIN_PASSWORD)"
            )
        if password == DEFAULT_ADMIN_PASSWORD:
            logger.warning("Admin account uses the default password")
        self.username = username
        self._password = password
        self.token_expiry = timedelta(hours=token_expiry_hours)
        self._clock = clock
        self._tokens: Dict[str, datetime] = {}
        self._failures: Dict[str, Deque[datetime]] = {}
        self._lock = threading.Lock()

    def login(self, username: str, password: str) -> str:
        """
        Returns:
            New bearer token

        Raises:
            TooManyAttemptsError: User locked out after repeated failures
            UnauthorizedError: Wrong credentials
        """
        now = self._clock()
        with self._lock:
            key = username or ''
            self._purge_stale_failures(now)
            failures = self._failures.get(key, deque())
            if len(failures) >= MAX_FAILED_LOGINS:
                logger.warning(f"Login blocked for '{username}': too many failed attempts")
                raise TooManyAttemptsError(
                    f"Too many failed login attempts. Try again in {LOCKOUT_WINDOW_MINUTES} minutes."
                )

            user_ok = hmac.compare_digest((username or '').encode('utf-8'), self.username.encode('utf-8'))
            password_ok = hmac.compare_digest((password or '').encode('utf-8'), self._password.encode('utf-8'))
            if not (user_ok and password_ok):
                failures.append(now)
                self._failures[key] = failures
                logger.warning(f"Failed login for '{username}' ({len(failures)}/{MAX_FAILED_LOGINS})")
                raise UnauthorizedError("Invalid username or password")

            self._failures.pop(key, None)
            self._purge_expired(now)
            token = str(uuid.uuid4())
            self._tokens[token] = now + self.token_expiry
        logger.info(f"Admin login: {username}")
        return token

    def check(self, token: Optional[str]) -> bool:
        if not token:
            return False
        now = self._clock()
        with self._lock:
            expires_at = self._tokens.get(token)
            if expires_at is None:
                return False
            if expires_at <= now:
                del self._tokens[token]
                return False
            return True

    def require(self, token: Optional[str]) -> None:
        """
        Raises:
            UnauthorizedError: Missing, unknown or expired token
        """
        if not self.check(token):
            raise UnauthorizedError("Missing, invalid or expired token")

    def logout(self, token: Optional[str]) -> bool:
        with self._lock:
            return self._tokens.pop(token, None) is not None if token else False

    def _purge_stale_failures(self, now: datetime) -> None:
        window_start = now - timedelta(minutes=LOCKOUT_WINDOW_MINUTES)
        for key in list(self._failures):
            failures = self._failures[key]
            while failures and failures[0] <= window_start:
                failures.popleft()
            if not failures:
                del self._failures[key]

    def _purge_expired(self, now: datetime) -> None:
        for token in [t for t, expires_at in self._tokens.items() if expires_at <= now]:
            del self._tokens[token]


__all__ = ['AuthService']
