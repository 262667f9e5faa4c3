"""Error taxonomy for stat value ingestion.

Every error is recoverable from the caller's point of view. The HTTP layer maps
``status_code`` and ``code`` onto the response; batch operations stop at the
first error and leave nothing committed.
"""
from typing import Any, Optional


class StatEngineError(Exception):
    status_code = 500
    code = "stat_error"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"message": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(StatEngineError):
    """Malformed or out-of-range input: a value, a W/E date or a stat definition."""

    status_code = 400
    code = "validation_error"


class NotFoundError(StatEngineError):
    status_code = 404
    code = "not_found"


class ScopeError(StatEngineError):
    """The operation targets a stat outside what this actor or endpoint may touch."""

    status_code = 403
    code = "wrong_scope"


class PersistenceError(StatEngineError):
    """The store failed; the surrounding transaction has been rolled back."""

    status_code = 500
    code = "persistence_error"
