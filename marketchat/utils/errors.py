"""
Domain errors raised by the repositories and services.

Routers never build error responses themselves: these exceptions propagate
up and ``error_handlers.register_error_handlers`` maps each one to its HTTP
status and the ``{"status": "error", "message": ...}`` envelope.
"""


class MarketchatError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketchatError):
    """Malformed or missing input (empty content, self-conversation...)."""

    status_code = 400


class AuthorizationError(MarketchatError):
    """Actor is not a participant of the conversation it operates on."""

    status_code = 403


class NotFoundError(MarketchatError):
    """Referenced conversation, participant or product does not exist."""

    status_code = 404


class StorageError(MarketchatError):
    """The store failed in a way the caller cannot fix."""

    status_code = 500
