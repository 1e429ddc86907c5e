"""
Session Management

DESIGN DECISION: There is no process-wide "current user". A Session is
an explicit value passed into every ledger and report call.

Lifecycle:
- created when the identity provider reports a signed-in user
- replaced when a different user signs in
- cleared when the provider reports a sign-out

The identity provider is external: we only read the user ID it reports
and never call its login/logout operations.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field


logger = structlog.get_logger(__name__)

AuthCallback = Callable[[Optional[str]], None]
Unsubscribe = Callable[[], None]
SessionListener = Callable[[Optional["Session"]], None]


class IdentityProvider(Protocol):
    """What the ledger needs from an identity provider."""

    def current_user_id(self) -> Optional[str]:
        ...

    def on_auth_change(self, callback: AuthCallback) -> Unsubscribe:
        ...


class NotAuthenticatedError(Exception):
    """An operation that needs a signed-in user was called without one."""
    pass


class Session(BaseModel):
    """An authenticated user's session."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Stable identifier from the identity provider"
    )
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_authenticated(self) -> bool:
        return True


def require_session(session: Optional[Session]) -> Session:
    """
    Raises:
        NotAuthenticatedError: If there is no session
    """
    if session is None:
        raise NotAuthenticatedError("You must be logged in to do this")
    return session


class SessionManager:
    """
    Keeps the current Session in step with the identity provider.

    Listeners are called with the new session (or None) on every change.
    """

    def __init__(self, provider: IdentityProvider):
        self._provider = provider
        self._session: Optional[Session] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._listeners: list[SessionListener] = []

    @property
    def current(self) -> Optional[Session]:
        return self._session

    def require(self) -> Session:
        return require_session(self._session)

    def add_listener(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self) -> Optional[Session]:
        """Adopt the provider's current identity and follow its changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self._provider.on_auth_change(self._on_auth_change)
        self._on_auth_change(self._provider.current_user_id())
        return self._session

    def stop(self) -> None:
        """Stop following the provider. The current session is kept."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_auth_change(self, user_id: Optional[str]) -> None:
        previous = self._session
        if user_id:
            if previous is not None and previous.user_id == user_id:
                return
            self._session = Session(user_id=user_id)
            logger.info("session_started", user_id=user_id)
        else:
            if previous is None:
                return
            self._session = None
            logger.info("session_ended", user_id=previous.user_id)

        for listener in list(self._listeners):
            listener(self._session)
