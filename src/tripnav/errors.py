# errors.py
# Exception hierarchy for the navigation engine.

from enum import Enum
from typing import Any, Dict, Optional


class NavigationError(Exception):
    """Base exception for all navigation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RouteErrorKind(Enum):
    NO_PATH_FOUND        = "no_path_found"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    TIMEOUT              = "timeout"


class RouteError(NavigationError):
    """Raised by a route provider when a path cannot be computed."""

    def __init__(
        self,
        kind: RouteErrorKind,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or kind.value, details)
        self.kind = kind

    @property
    def is_retryable(self) -> bool:
        return self.kind in (RouteErrorKind.PROVIDER_UNAVAILABLE, RouteErrorKind.TIMEOUT)


class RouteComputationFailed(NavigationError):
    """Route computation gave up after retries. Recoverable: a fallback is used."""


class LocationUnavailable(NavigationError):
    """The location feed failed or went silent. Recoverable: data marked stale."""


class InvalidWaypointList(NavigationError, ValueError):
    """Empty waypoint list or start index out of range."""


class SessionStateError(NavigationError):
    """Operation not allowed in the session's current state."""
