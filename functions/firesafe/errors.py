"""
Domain errors and their HTTP mapping.

Handlers raise these; the exception handlers in `firesafe.app` turn them
into the `{"error": ..., "code": ...}` envelope.
"""

from __future__ import annotations


class FiresafeError(Exception):
    status_code = 500
    default_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def as_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidRequestError(FiresafeError):
    status_code = 400
    default_code = "INVALID_REQUEST"


class ConflictError(FiresafeError):
    status_code = 400
    default_code = "CONFLICT"


class NotFoundError(FiresafeError):
    status_code = 404
    default_code = "NOT_FOUND"


class UpstreamError(FiresafeError):
    """A dependency (model API, storage, remote download) failed."""

    status_code = 500
    default_code = "UPSTREAM_ERROR"


class ConfigurationError(FiresafeError):
    """A required secret is missing or unusable."""

    status_code = 500
    default_code = "CONFIGURATION_ERROR"


class DuplicateKeyError(Exception):
    """Raised by database clients when a unique column would be duplicated."""

    def __init__(self, column: str):
        super().__init__(f"Duplicate value for unique column '{column}'")
        self.column = column
