"""Exception hierarchy shared by the board, storage and catalog layers."""

from __future__ import annotations

from typing import Any

__all__ = [
    "ErrorCode",
    "TierboardError",
    "CatalogError",
    "CatalogUnavailableError",
    "ImportFormatError",
    "StorageError",
]


class ErrorCode:
    """Machine-readable identifiers attached to raised errors."""

    CATALOG_UNAVAILABLE = "catalog_unavailable"
    CATALOG_REQUEST_FAILED = "catalog_request_failed"
    INVALID_IMPORT = "invalid_import"
    STORAGE_FAILURE = "storage_failure"
    INTERNAL_ERROR = "internal_error"


class TierboardError(Exception):
    """Base class for all errors raised at the async boundary."""

    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    @property
    def recoverable(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class CatalogError(TierboardError):
    """Raised when the catalog service answers with a non-2xx status."""

    code = ErrorCode.CATALOG_REQUEST_FAILED

    def __init__(self, status: int, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.status = status

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["status"] = self.status
        return payload


class CatalogUnavailableError(CatalogError):
    """503/504 from the catalog; retried before it is surfaced."""

    code = ErrorCode.CATALOG_UNAVAILABLE

    @property
    def recoverable(self) -> bool:
        return True


class ImportFormatError(TierboardError, ValueError):
    """Raised when an import document does not match the expected structure."""

    code = ErrorCode.INVALID_IMPORT


class StorageError(TierboardError):
    """Raised by storage backends when a record cannot be read or written."""

    code = ErrorCode.STORAGE_FAILURE

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message, details={"key": key})
        self.key = key
