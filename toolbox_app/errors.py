"""
Domain errors for the toolbox service.

Each error carries the HTTP status and the public message rendered by the
exception handlers in ``main.py``. Messages never contain internal details.
"""

from fastapi import status


class ToolboxError(Exception):
    """Base class for expected, handled outcomes."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    public_message: str = "Bad request"

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class InvalidSlug(ToolboxError):
    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid short link"


class Forbidden(ToolboxError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "You don't have permission to access this resource."


class NotFound(ToolboxError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "The requested resource was not found."


class Conflict(ToolboxError):
    status_code = status.HTTP_409_CONFLICT
    public_message = "Resource already exists"


class StorageUnavailable(ToolboxError):
    """The registry itself could not be read. The only hard failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Internal server error"

    def __init__(self, message: str = None):
        # The cause is logged by the raiser, the client always gets the generic text
        super().__init__(self.public_message)
        self.internal_message = message
