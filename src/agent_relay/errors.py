"""Error taxonomy shared by the relay services and the HTTP layer."""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for relay errors."""


class NotFoundError(RelayError):
    """Raised when an agent, conversation or message does not exist."""


class ForbiddenError(RelayError):
    """Raised when the acting agent is not a participant or recipient."""


class ConflictError(RelayError):
    """Raised when a write collides with existing data."""


class UnauthorizedError(RelayError):
    """Raised when a credential does not belong to any agent."""


class AdapterFailure(RelayError):
    """Raised when a special agent cannot produce a reply."""


class StoreFailure(RelayError):
    """Raised when the persistence layer fails."""
