# Overview: Domain error taxonomy and the single adapter that maps it to JSON responses.

"""
Error taxonomy for the claim and inventory lifecycles.

Services raise these; routes never build error responses themselves. The
adapter registered by register_error_handlers() turns every DomainError into

    {"error": "<human readable message>", "kind": "<stable machine kind>"}

with the class's HTTP status. NotFoundError is also used for entities that
exist but are not visible to the caller in the required state (e.g. someone
else's draft), so existence never leaks.
"""

from __future__ import annotations

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException


class DomainError(Exception):
    """Base class for expected, user-facing failures."""

    kind = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(DomainError):
    """400-level input problem."""

    kind = "validation_error"
    status_code = 400
    default_message = "Invalid input"


class InvalidStateError(DomainError):
    """Entity exists but is not in the state the transition requires."""

    kind = "invalid_state"
    status_code = 400
    default_message = "Invalid state for this operation"


class InsufficientStockError(DomainError):
    kind = "insufficient_stock"
    status_code = 400
    default_message = "Insufficient stock"


class UnauthorizedError(DomainError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., duplicate item name)."""

    kind = "conflict"
    status_code = 409
    default_message = "Conflict"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        # Flask routes HTTPExceptions here too once a generic handler exists
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description, "kind": "http_error"}), exc.code

        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error", "kind": "internal_error"}), 500
