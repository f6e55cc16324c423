"""CIRRUS — Error Taxonomy.

Every failure raised by the migration engine, the repository and the sync job
derives from ``CirrusError`` and carries enough context (unit name, entity key)
to diagnose it. Nothing in the core retries.
"""

from typing import Any, Dict, Optional


class CirrusError(Exception):
    """Base exception for all CIRRUS errors."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConnectivityError(CirrusError):
    """Raised when the store or the catalog source cannot be reached."""

    def __init__(self, message: str, code: str = "connectivity_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class CatalogAPIError(ConnectivityError):
    """Raised when the catalog API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int = 0, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        super().__init__(message, code="catalog_api_error", details={**(details or {}), "status_code": status_code})


class StoreError(CirrusError):
    """Raised when a write or read against the relational store fails."""

    def __init__(self, message: str, code: str = "store_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ConstraintViolation(StoreError):
    """NOT NULL, uniqueness or foreign-key violation reported by the store."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="constraint_violation", details=details)


class StoreUnavailableError(StoreError, ConnectivityError):
    """The store rejected the connection or the operation could not reach it."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        CirrusError.__init__(self, message, code="store_unavailable", details=details)


class SerializationError(CirrusError):
    """A nested structure could not be encoded before a write."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="serialization_error", details=details)


class MigrationError(CirrusError):
    """A pending migration unit failed; the whole pending batch was rolled back."""

    def __init__(self, unit_name: str, cause: Optional[BaseException] = None):
        self.unit_name = unit_name
        self.cause = cause
        message = f"migration {unit_name} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, code="migration_error", details={"unit_name": unit_name})


class SyncError(CirrusError):
    """The catalog source failed during a synchronization run."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="sync_error", details=details)
