"""Authentication session package."""

from ledger.auth.session import (
    IdentityProvider,
    NotAuthenticatedError,
    Session,
    SessionManager,
    require_session,
)

__all__ = [
    "IdentityProvider",
    "NotAuthenticatedError",
    "Session",
    "SessionManager",
    "require_session",
]
