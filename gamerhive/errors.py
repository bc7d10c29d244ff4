# gamerhive/errors.py
"""
Error taxonomy for the authentication and account lifecycle core.

- ValidationError: detected on the client, never reaches the network
- ServerError: the backend answered with success=false
- NetworkError: the request never produced a response
- SessionRequiredError: an authenticated operation ran without a session
- ActionInProgressError: the same action is already waiting on the network

Every error carries a stable code and a user-facing message. to_dict()
renders the same {"error": {"code", "message"}} shape the backend uses.
"""

from __future__ import annotations

from typing import Optional

NETWORK_ERROR_MESSAGE = "Network connection failed. Please check your connection and try again."
SESSION_REQUIRED_MESSAGE = "User not found. Please log in again."


class AuthError(Exception):
    """Base class for every error surfaced to the user by this package."""

    code = "AUTH_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(AuthError):
    code = "VALIDATION_ERROR"


class ServerError(AuthError):
    code = "SERVER_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.status_code = status_code


class NetworkError(AuthError):
    code = "NETWORK_ERROR"

    def __init__(self, message: str = NETWORK_ERROR_MESSAGE, detail: Optional[str] = None):
        super().__init__(message)
        # Transport detail is for logs only, never shown to the user.
        self.detail = detail


class SessionRequiredError(AuthError):
    code = "SESSION_REQUIRED"

    def __init__(self, message: str = SESSION_REQUIRED_MESSAGE):
        super().__init__(message)


class ActionInProgressError(AuthError):
    code = "IN_FLIGHT"

    def __init__(self, action: str):
        super().__init__(f"{action} is already in progress")
        self.action = action
