"""Catalog error taxonomy shared by the service layer, the API and the client.

Every error carries a machine-readable ``code``. Clients branch on the code;
the human-readable message is for display only.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error kinds exposed in API responses as ``code``."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    SERVER = "server_error"


class CatalogError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.SERVER

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code.value}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CatalogError):
    """Missing or malformed input."""

    status_code = 400
    code = ErrorCode.VALIDATION


class NotFoundError(CatalogError):
    """No record exists for the given id."""

    status_code = 404
    code = ErrorCode.NOT_FOUND


class ConflictError(CatalogError):
    """A record with the same name already exists.

    Surfaced with status 400 for compatibility with existing callers; the
    ``code`` field ("conflict") is what distinguishes it from a validation
    failure. ``existing`` is the record that caused the conflict so callers
    can offer "use existing" or "merge into existing".
    """

    status_code = 400
    code = ErrorCode.CONFLICT

    def __init__(self, message: str, existing: dict | None = None, details: str | None = None):
        super().__init__(message, details)
        self.existing = existing

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.existing is not None:
            body["existing"] = self.existing
        return body


class AuthError(CatalogError):
    """Raised by the client when the API rejects its credentials."""

    status_code = 401
    code = ErrorCode.UNAUTHORIZED


class ServerError(CatalogError):
    """Store or upstream failure."""

    status_code = 500
    code = ErrorCode.SERVER


_ERRORS_BY_CODE: dict[str, type[CatalogError]] = {
    ErrorCode.VALIDATION.value: ValidationError,
    ErrorCode.NOT_FOUND.value: NotFoundError,
    ErrorCode.CONFLICT.value: ConflictError,
    ErrorCode.UNAUTHORIZED.value: AuthError,
    ErrorCode.SERVER.value: ServerError,
}


def error_from_response(status_code: int, body: Any) -> CatalogError:
    """Rebuild a CatalogError from an API error response body."""
    if not isinstance(body, dict):
        body = {"error": str(body) if body else f"HTTP {status_code}"}

    message = body.get("error") or body.get("detail") or f"HTTP {status_code}"
    if not isinstance(message, str):
        message = str(message)
    details = body.get("details")

    error_cls = _ERRORS_BY_CODE.get(body.get("code", ""))
    if error_cls is None:
        if status_code == 404:
            error_cls = NotFoundError
        elif status_code in (401, 403):
            error_cls = AuthError
        elif 400 <= status_code < 500:
            error_cls = ValidationError
        else:
            error_cls = ServerError

    if error_cls is ConflictError:
        return ConflictError(message, existing=body.get("existing"), details=details)
    return error_cls(message, details=details)
