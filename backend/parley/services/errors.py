"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; ``parley.main`` renders every
one of them as ``{"error": message}``.
"""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    """Base class for business rule violations."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class InvalidInputError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class RateLimitedError(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again later."


class InvalidTarget(InvalidInputError):
    default_message = "Cannot send a chat request to this user"


class AlreadyConnected(ConflictError):
    default_message = "You are already connected with this user"


class RequestPending(ConflictError):
    default_message = "A chat request is already pending between you and this user"


class QuotaExceeded(RateLimitedError):
    default_message = "You have reached the maximum number of chat requests to this user for this year"


class AlreadyResponded(InvalidInputError):
    default_message = "This request has already been responded to"


class NotPending(InvalidInputError):
    default_message = "Only pending requests can be cancelled"


class NotEditable(InvalidInputError):
    default_message = "This message cannot be edited"


class EmptyContent(InvalidInputError):
    default_message = "Message content is required"


class Muted(ForbiddenError):
    default_message = "You are muted in this group"


class CannotDeleteSelf(InvalidInputError):
    default_message = "You cannot delete your own account from the admin panel"


class CannotDeleteAdmin(ForbiddenError):
    default_message = "Cannot delete another admin"
