"""
Domain errors raised by the core services.

Each error carries the HTTP status code the server maps it to, so the core
stays free of FastAPI imports while routers can simply let them propagate.
"""

from __future__ import annotations


class DirectoryError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFoundError(DirectoryError):
    status_code = 404


class ConflictError(DirectoryError):
    status_code = 409


class InsufficientCreditsError(DirectoryError):
    """The business has no lead credits left."""

    status_code = 403


class PermissionDeniedError(DirectoryError):
    status_code = 403


class ExpiredError(DirectoryError):
    status_code = 410


class BillingNotConfiguredError(DirectoryError):
    """Stripe keys are missing from the environment."""

    status_code = 503


class WebhookSignatureError(DirectoryError):
    status_code = 400


class AuthenticationError(DirectoryError):
    status_code = 401
