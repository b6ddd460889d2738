"""Error taxonomy shared by services and routes.

Every error carries an HTTP status so the handlers registered in
``journalbook.main`` can map it without a lookup table. ``public_message``
is what the client sees; the constructor message stays in the logs.
"""
from __future__ import annotations

from typing import Optional


class JournalError(Exception):
    status_code = 500
    public_message = "Internal error"

    def __init__(self, message: str = "", *, public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ValidationError(JournalError):
    status_code = 400
    public_message = "Invalid request"

    def __init__(self, message: str = "", *, public_message: Optional[str] = None):
        # validation messages are safe to echo back
        super().__init__(message, public_message=public_message or message or None)


class Unauthorized(JournalError):
    status_code = 401
    public_message = "Unauthorized"


class Forbidden(JournalError):
    status_code = 403
    public_message = "Forbidden"


class NotFound(JournalError):
    status_code = 404
    public_message = "Not found"

    def __init__(self, message: str = "", *, public_message: Optional[str] = None):
        super().__init__(message, public_message=public_message or message or None)


class NoContent(JournalError):
    """A valid request whose result is legitimately empty."""
    status_code = 400
    public_message = "No content"

    def __init__(self, message: str = "", *, public_message: Optional[str] = None):
        super().__init__(message, public_message=public_message or message or None)


class GenerationFailed(JournalError):
    status_code = 502
    public_message = "Generation failed"


class StoreError(JournalError):
    status_code = 503
    public_message = "Storage unavailable"

    def __init__(self, operation: str, *, public_message: Optional[str] = None):
        self.operation = operation
        super().__init__(f"store operation failed: {operation}", public_message=public_message)


__all__ = [
    "JournalError",
    "ValidationError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "NoContent",
    "GenerationFailed",
    "StoreError",
]
