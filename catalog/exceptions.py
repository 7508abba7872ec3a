"""Error taxonomy for the catalog and ingestion pipeline.

Exception hierarchy:
    CatalogError (base, a DRF APIException)
    ├── ValidationError   missing/invalid input (HTTP 400)
    └── UpstreamError     CloudConvert, Jikan or storage failures (HTTP 502)

Because the base class is an ``APIException``, DRF turns any of these raised
inside a view into a JSON response built from ``to_dict()``.
"""

from typing import Any

from rest_framework import status
from rest_framework.exceptions import APIException


class CatalogError(APIException):
    """Base exception for all catalog errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for filtering logs
        details: Additional context as key-value pairs
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "CATALOG_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.error_code = self.default_code
        self.details = details or {}
        super().__init__(detail=self.to_dict(), code=self.error_code)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-serialisable dictionary.

        Uses 'error_message' rather than 'message' since the logging module
        reserves 'message' on records built with ``extra=``.
        """
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.error_code!r}, {self.message!r})"


class ValidationError(CatalogError):
    """Raised when required upload or import fields are missing or invalid."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class UpstreamError(CatalogError):
    """Raised when an external service or the object store fails.

    This covers:
    - CloudConvert job creation or status errors
    - Jikan API errors
    - S3 download/upload failures during materialization
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        error_details = details or {}
        if original_error:
            error_details["original_error"] = str(original_error)
            error_details["original_error_type"] = type(original_error).__name__
        self.original_error = original_error
        super().__init__(message, error_details)
