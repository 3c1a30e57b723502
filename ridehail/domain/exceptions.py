"""
Domain error kinds.

Each subclass carries the HTTP status the API layer maps it to, so the
services can raise without knowing about FastAPI.
"""


class RideHailError(Exception):
    """Base class for every error the API translates into a response."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class InvalidInputError(RideHailError):
    kind = "invalid-input"
    status_code = 400


class UnauthenticatedError(RideHailError):
    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(RideHailError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(RideHailError):
    kind = "not-found"
    status_code = 404


class ConflictError(RideHailError):
    kind = "conflict"
    status_code = 409


class InvalidStateError(RideHailError):
    kind = "invalid-state"
    status_code = 400


class AlreadyTakenError(InvalidStateError):
    """Another driver won the accept race."""

    def __init__(self, message: str = "already-taken"):
        super().__init__(message)


class GatewayError(RideHailError):
    kind = "gateway-error"
    status_code = 502


class AlreadyPaidError(ConflictError):
    """The ride's payment already settled."""

    def __init__(self, message: str = "already-paid"):
        super().__init__(message)
