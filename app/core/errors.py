"""Compliance service error hierarchy."""

from typing import Any


class ComplianceError(Exception):
    """Base exception for compliance service errors."""

    code = "COMPLIANCE_INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationInputError(ComplianceError):
    """Malformed request, e.g. missing required context fields."""

    code = "COMPLIANCE_INVALID_REQUEST"
    status_code = 400


class UnsupportedStandardError(ComplianceError):
    """Unknown or inactive token standard."""

    code = "COMPLIANCE_UNSUPPORTED_STANDARD"
    status_code = 400

    def __init__(self, standard: str, details: dict[str, Any] | None = None):
        super().__init__(
            f"Token standard '{standard}' is not supported",
            details={**(details or {}), "standard": standard},
        )
        self.standard = standard


class InvalidPaginationError(ComplianceError):
    """Page or page size outside the accepted range."""

    code = "COMPLIANCE_INVALID_PAGINATION"
    status_code = 400


class CapabilityDeniedError(ComplianceError):
    """The capability matrix explicitly denies the requested action."""

    code = "COMPLIANCE_CAPABILITY_DENIED"
    status_code = 403


class NotFoundError(ComplianceError):
    """Evidence or profile lookup miss."""

    code = "COMPLIANCE_NOT_FOUND"
    status_code = 404


class NoMatchingCapabilitiesError(ComplianceError):
    """A valid capability query that matched no entries.

    Not a failure of the caller: the query was well-formed, the matrix simply
    has nothing for it.
    """

    code = "COMPLIANCE_NO_MATCHING_CAPABILITIES"
    status_code = 404


class DuplicateEvidenceIdError(ComplianceError):
    """An evidence record with the same ID already exists."""

    code = "COMPLIANCE_DUPLICATE_EVIDENCE_ID"
    status_code = 409


class PersistenceError(ComplianceError):
    """Evidence store unavailable or timed out."""

    code = "COMPLIANCE_PERSISTENCE_FAILURE"
    status_code = 503


class EvidenceNotRecordedError(PersistenceError):
    """Validation decision was computed but its evidence could not be written.

    ``details["result"]`` carries the computed decision so callers can tell
    this apart from a recorded validation.
    """

    code = "COMPLIANCE_EVIDENCE_NOT_RECORDED"
    status_code = 503


class InternalError(ComplianceError):
    """Internal server error."""

    code = "COMPLIANCE_INTERNAL_ERROR"
    status_code = 500


class ProfileDefinitionError(Exception):
    """Malformed standard profile definitions. Fatal at startup."""


class CapabilityMatrixLoadError(Exception):
    """Capability matrix document missing or invalid. Fatal at startup."""


ERROR_STATUS_MAP: dict[type[ComplianceError], int] = {
    ValidationInputError: 400,
    UnsupportedStandardError: 400,
    InvalidPaginationError: 400,
    CapabilityDeniedError: 403,
    NotFoundError: 404,
    NoMatchingCapabilitiesError: 404,
    DuplicateEvidenceIdError: 409,
    PersistenceError: 503,
    EvidenceNotRecordedError: 503,
    InternalError: 500,
}


def get_status_code(error: ComplianceError) -> int:
    """Get HTTP status code for error."""
    return ERROR_STATUS_MAP.get(type(error), 500)
