"""Depot error types.

Error codes are stable strings for programmatic handling. The HTTP layer maps
each error to ``status_code``; the admin shell prints ``message``.
"""

from __future__ import annotations

from typing import Any


class DepotError(Exception):
    """Base error for all Depot exceptions."""

    code: str = "internal_error"
    message: str = "An internal error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Serialize to the API error envelope."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }
        if request_id:
            error["request_id"] = request_id
        return {"error": error}


class NotFoundError(DepotError):
    """Named identity, route grant or artifact path is absent (404)."""

    code = "not_found"
    message = "Resource not found"
    status_code = 404


class NameConflictError(DepotError):
    """Identity name already taken (409)."""

    code = "name_conflict"
    message = "Name already exists"
    status_code = 409


class InvalidArgumentError(DepotError):
    """Malformed permission, route or path value (400)."""

    code = "invalid_argument"
    message = "Invalid argument"
    status_code = 400


class UnauthenticatedError(DepotError):
    """No secret presented, or the secret does not resolve (401)."""

    code = "unauthenticated"
    message = "Authentication required"
    status_code = 401


class InsufficientScopeError(DepotError):
    """Authenticated, but no grant covers the requested path (403)."""

    code = "insufficient_scope"
    message = "Permission denied"
    status_code = 403


class PathEscapeError(DepotError):
    """Resolved path lies outside its repository root.

    Treated as a security fault in logs. Externally it is presented exactly
    like a not-found so callers cannot probe the storage layout.
    """

    code = "path_escape"
    message = "Path escapes repository root"
    status_code = 404

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        return NotFoundError().to_dict(request_id)


class StorageFaultError(DepotError):
    """Underlying I/O or database failure (500)."""

    code = "storage_fault"
    message = "Storage failure"
    status_code = 500
