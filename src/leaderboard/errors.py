"""Error taxonomy for the leaderboard sync engine.

Every failure raised inside a sync cycle is a ``SyncError`` subclass so the
cycle's top-level handler and the HTTP layer can tell the kinds apart:

    AuthError             — login / refresh / identity lookup was rejected
    CredentialError       — acquisition through the credential gate failed
    NotFoundError         — the platform answered 404
    TransientNetworkError — any other remote failure (transport, 5xx, bad JSON)
    ValidationError       — malformed inbound token or date range
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all leaderboard sync errors."""


class AuthError(SyncError):
    """The platform rejected our credentials (401/403)."""


class CredentialError(AuthError):
    """Login or refresh failed while acquiring a credential."""


class NotFoundError(SyncError):
    """The requested platform resource does not exist."""


class TransientNetworkError(SyncError):
    """A remote call failed for a non-auth reason.

    Timeouts, 5xx responses and unparseable bodies are treated alike; the
    next scheduled tick is the retry.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(SyncError):
    """Inbound input (token or date range) is malformed."""
