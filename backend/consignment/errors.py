# Overview: Error taxonomy shared by services and routes.

"""
Every expected failure is a ConsignmentError subclass carrying a
machine-readable kind and the HTTP status the routes answer with.

Anything else reaching a route is treated as Unexpected: logged with
full context and answered with an opaque 500.
"""


class ConsignmentError(Exception):
    """Base class for expected, caller-facing failures."""

    kind = "Unexpected"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(ConsignmentError):
    """Referenced entity is absent."""
    kind = "NotFound"
    status_code = 404


class InvalidStateError(ConsignmentError):
    """Operation violates a lifecycle invariant (double sale, paid reversal)."""
    kind = "InvalidState"
    status_code = 400


class ForbiddenError(ConsignmentError):
    """Role or ownership violation."""
    kind = "Forbidden"
    status_code = 403


class ValidationError(ConsignmentError):
    """Malformed or missing required input."""
    kind = "Validation"
    status_code = 400


class UnauthenticatedError(ConsignmentError):
    kind = "Unauthenticated"
    status_code = 401


UNEXPECTED_ERROR_BODY = {"error": "Internal server error", "kind": "Unexpected"}
