"""Best-effort detection of the active user."""

import json
import logging
import platform
import sys
import uuid

from .models import UserContext
from .ports import UserStoragePort

logger = logging.getLogger(__name__)

USER_KEY = "user"
SESSION_KEY = "error_tracking_session_id"
UNKNOWN_IP = "unknown"  # real client IP is not observable in-process


def runtime_user_agent() -> str:
    """User agent string describing this interpreter."""
    return f"python/{platform.python_version()} ({sys.platform})"


class UserContextResolver:
    """Resolves the current user from two ordered storages.

    Never raises: any missing or unparseable entry falls back to a
    context identified only by the session id.
    """

    def __init__(
        self,
        primary: UserStoragePort,
        fallback: UserStoragePort,
        user_agent: str | None = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.user_agent = user_agent or runtime_user_agent()

    def detect(self) -> UserContext:
        try:
            raw = self.primary.get_item(USER_KEY) or self.fallback.get_item(USER_KEY)
            if raw:
                user = json.loads(raw)
                username = user.get("username") or user.get("name")
                return UserContext(
                    id=str(user.get("id") or "unknown"),
                    username=str(username) if username else None,
                    email=user.get("email"),
                    ip_address=UNKNOWN_IP,
                    user_agent=self.user_agent,
                )
        except Exception as e:
            logger.debug(f"User context detection failed, using default: {e}")
        return self.default_context()

    def default_context(self) -> UserContext:
        return UserContext(
            id=self.session_id(),
            ip_address=UNKNOWN_IP,
            user_agent=self.user_agent,
        )

    def session_id(self) -> str:
        """Session identifier, generated once per session storage."""
        try:
            session_id = self.fallback.get_item(SESSION_KEY)
            if not session_id:
                session_id = uuid.uuid4().hex
                self.fallback.set_item(SESSION_KEY, session_id)
            return session_id
        except Exception as e:
            logger.debug(f"Session storage unavailable: {e}")
            return uuid.uuid4().hex
