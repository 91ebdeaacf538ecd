"""
Domain error taxonomy.

Every error carries a stable machine-readable ``code`` and the HTTP status the
transport layer renders it with. Messages are generic by construction: raw store
or cache error text never ends up in ``message``.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------


class ValidationError(AppError):
    """Missing or malformed input. Not retryable."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class InvalidRoute(ValidationError):
    code = "invalid_route"
    default_message = "A route needs at least 2 waypoints"


class InvalidDay(ValidationError):
    code = "invalid_day"
    default_message = "Day must be between 0 (Sunday) and 6 (Saturday)"


class Conflict(ValidationError):
    code = "conflict"
    status_code = 409
    default_message = "Resource already exists"


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class NotFoundOrNotOwned(AppError):
    """Resource is absent or belongs to someone else. Deliberately indistinguishable."""

    code = "not_found"
    status_code = 404
    default_message = "Resource not found"


class RouteNotFound(NotFoundOrNotOwned):
    code = "route_not_found"
    default_message = "Route not found"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class AuthInvalid(AppError):
    code = "auth_invalid"
    status_code = 401
    default_message = "Authentication required"


class InvalidToken(AuthInvalid):
    code = "invalid_token"
    default_message = "Invalid or expired token"


class InvalidCredentials(AuthInvalid):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class UserNotFound(AuthInvalid):
    code = "user_not_found"
    default_message = "User not found"


class UserInactive(AuthInvalid):
    code = "user_inactive"
    default_message = "Account is disabled"


class AuthExpired(AppError):
    code = "auth_expired"
    status_code = 401
    default_message = "Session expired"


class SessionExpired(AuthExpired):
    code = "session_expired"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class StoreUnavailable(AppError):
    """Relational store failure. Always surfaced."""

    code = "store_unavailable"
    status_code = 503
    default_message = "Service temporarily unavailable"


class CacheUnavailable(AppError):
    """Cache store failure. Never escapes the cache boundary."""

    code = "cache_unavailable"
    status_code = 503
    default_message = "Cache unavailable"
