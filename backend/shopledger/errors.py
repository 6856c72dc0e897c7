# Overview: Service-level error taxonomy shared by services and routes.

"""
Every failure a caller can act on is a ServiceError subclass carrying the HTTP
status it maps to. Routes turn these into {"error": ..., "details": ...}
responses; anything else is an unexpected 500 and is logged, never echoed.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, user-visible failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """400-level input problem (malformed, missing or out-of-range)."""
    status_code = 400


class AuthenticationError(ServiceError):
    """401: no identity could be established."""
    status_code = 401


class AuthorizationError(ServiceError):
    """403: identity established but role not allowed."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """409: state precondition violated (already sold, already paid, stale version)."""
    status_code = 409


class ConsistencyError(ServiceError):
    """
    500: the ledger and its side effects disagree.

    Not recovered automatically; an operator reconciles using
    `flask ledger audit`.
    """
    status_code = 500
