"""Exception hierarchy for the navigation core."""


class NavigationError(Exception):
    """Base class for all navigation errors."""


class PositioningError(NavigationError):
    """Device positioning failed."""

    reason = "unavailable"


class PermissionDeniedError(PositioningError):
    """The user (or platform) refused access to the device position."""

    reason = "permission-denied"


class PositionUnavailableError(PositioningError):
    """No usable fix could be obtained (timeout, no signal, malformed fix)."""

    reason = "position-unavailable"


class QueryError(NavigationError):
    """Point-of-interest query failed or returned an unusable payload."""


class RoutingError(NavigationError):
    """Routing request failed or returned fewer than two valid points."""


class StorageError(NavigationError):
    """Durable store could not be read or written."""
