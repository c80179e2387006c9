"""
Kindred - Domain exceptions.

Services raise these; a single handler in ``app.main`` turns them into
``{"detail": message}`` responses with the carried status code.
"""

from __future__ import annotations


class KindredError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(KindredError):
    status_code = 404
    default_message = "Not found"


class InvalidRequestError(KindredError):
    status_code = 400
    default_message = "Invalid request"


class InsufficientFundsError(KindredError):
    status_code = 402
    default_message = "Insufficient coins"

    def __init__(self, required: int, message: str | None = None) -> None:
        self.required = required
        super().__init__(message or f"Insufficient coins: {required} required")


class ForbiddenError(KindredError):
    status_code = 403
    default_message = "Forbidden"


class ConflictError(KindredError):
    status_code = 409
    default_message = "Conflict"


class MissionAlreadyClaimedError(InvalidRequestError):
    default_message = "Mission already claimed today"


class MissionNotCompletedError(InvalidRequestError):
    default_message = "Mission not yet completed"
