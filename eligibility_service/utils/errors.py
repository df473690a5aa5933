"""
Custom Exceptions
Domain errors raised below the HTTP layer; api.main maps them to responses.
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
"""


# =============================================================================
# Domain Errors
# =============================================================================


class EligibilityServiceError(Exception):
    """Base class for errors raised below the HTTP layer."""

    code = "ELIGIBILITY_SERVICE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreUnavailableError(EligibilityServiceError):
    """The coverage store could not be reached. Retryable by the caller."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Exception | None = None):
        detail = f"Coverage store unavailable during {operation}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
        self.operation = operation
        self.cause = cause


class BlobDecodeError(EligibilityServiceError):
    """A stored JSON document could not be decoded."""

    code = "DECODE_ERROR"

    def __init__(self, field: str, record_id: str, cause: Exception | None = None):
        super().__init__(f"Malformed {field} document on record {record_id}: {cause}")
        self.field = field
        self.record_id = record_id


class CoverageNotFoundError(EligibilityServiceError):
    """Raised by the admin surface when a coverage record does not exist."""

    code = "COVERAGE_NOT_FOUND"

    def __init__(self, coverage_id: str):
        super().__init__(f"Coverage record {coverage_id} not found")
        self.coverage_id = coverage_id
