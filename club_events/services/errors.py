class EventError(Exception):
    """Base class for errors raised by the event mutation service."""

    code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EventError):
    code = 400


class AuthorizationError(EventError):
    code = 401


class NotFoundError(EventError):
    code = 404


class StorageError(EventError):
    code = 500


class EventBusyError(StorageError):
    """Another request holds the event lock. Safe to retry."""

    code = 409
