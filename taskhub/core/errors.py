from fastapi import status


class DomainError(Exception):
    """Base class for errors that map onto a client-visible HTTP status."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(DomainError):
    """Lifecycle precondition violated, e.g. restoring an active task."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
