"""
Exception hierarchy for SDDC Manager certificate operations.

Every error raised by this package derives from CertificateOperationError,
so callers can catch the whole family or a single condition.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationReport


class CertificateOperationError(Exception):
    """Base class for all certificate operation failures."""
    pass


class TransportError(CertificateOperationError):
    """
    Raised when talking to SDDC Manager fails.

    Covers connection errors, HTTP error statuses and undecodable bodies.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        remote_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.remote_message = remote_message


class AuthenticationError(TransportError):
    """Raised when SDDC Manager rejects the credentials or the token."""
    pass


class TransportTimeout(TransportError):
    """Raised when a single API call exceeds its per-call timeout."""
    pass


class InvalidResponse(CertificateOperationError):
    """Raised when a response matches none of the expected shapes."""
    pass


class OperationCancelled(CertificateOperationError):
    """Raised when the deadline expires or the caller cancels a wait."""

    def __init__(self, message: str, operation_id: Optional[str] = None):
        super().__init__(message)
        self.operation_id = operation_id


class ValidationFailed(CertificateOperationError):
    """
    Raised when a certificate validation finishes with failures.

    The full structured report is kept on the exception; the message
    lists every failing resource.
    """

    def __init__(self, report: "ValidationReport"):
        self.report = report
        lines = report.diagnostics()
        summary = (
            f"Certificate validation {report.validation_id or '<sync>'} "
            f"finished with status {report.overall_status.value}: "
            f"{len(report.failures)} resource(s) failed"
        )
        super().__init__("\n".join([summary] + [f"  - {line}" for line in lines]))


class TaskFailed(CertificateOperationError):
    """Raised when an SDDC Manager task ends in a failed state."""

    def __init__(self, task_id: str, status: str, errors: Optional[List[str]] = None):
        self.task_id = task_id
        self.status = status
        self.errors = list(errors or [])
        message = f"Task {task_id} finished with status {status}"
        if self.errors:
            message += ": " + "; ".join(self.errors)
        super().__init__(message)


class NotFound(CertificateOperationError):
    """Raised when a lookup by name matches nothing."""
    pass


class EncodingError(CertificateOperationError):
    """Raised when fingerprint input cannot be digested."""
    pass
