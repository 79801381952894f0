"""Error taxonomy shared by the REST routes and the realtime channel."""


class ChatError(Exception):
    """Base class for failures reported back to a client."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """A required field is missing, empty or malformed."""

    status_code = 400


class AuthError(ChatError):
    """A live connection presented no usable identity."""

    status_code = 401


class NotFoundError(ChatError):
    status_code = 404


class StorageError(ChatError):
    """The backing store failed to read or write."""

    status_code = 500
