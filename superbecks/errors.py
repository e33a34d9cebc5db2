"""Error taxonomy shared by the screens and the admin endpoint."""

from __future__ import annotations


class SuperbecksError(Exception):
    """Base error carrying a user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class AuthRequired(SuperbecksError):
    """No session, an invalid token, or the wrong role for the screen."""

    status_code = 401


class ValidationError(SuperbecksError):
    """Missing or invalid input detected before any backend write."""

    status_code = 400


class BackendError(SuperbecksError):
    """A read or write against the hosted backend failed."""

    status_code = 500


class ConfigError(SuperbecksError):
    """Required environment configuration is missing."""

    status_code = 500
