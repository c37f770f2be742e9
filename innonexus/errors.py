"""
Exception taxonomy shared by the services and the HTTP layer.

Services raise these; ``innonexus.app`` renders them as
``{"success": false, "message": ...}`` with ``status_code``.
"""

from __future__ import annotations

from typing import Optional


class InnonexusError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InnonexusError):
    """User-correctable input problem, naming the offending field."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthenticationError(InnonexusError):
    status_code = 401


class PermissionDeniedError(InnonexusError):
    status_code = 403


class NotFoundError(InnonexusError):
    status_code = 404


class InvalidTransitionError(InnonexusError):
    """A status change was attempted from a state that does not allow it."""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class TokenError(InnonexusError):
    pass


class TokenNotFoundError(TokenError):
    status_code = 404

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    status_code = 410

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenAlreadyUsedError(TokenError):
    status_code = 409

    def __init__(self, message: str = "Token has already been used"):
        super().__init__(message)
