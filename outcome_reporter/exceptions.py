"""Exceptions raised by the reporting core."""


class ReportingError(Exception):
    """Base class for reporting errors."""


class BackendResponseError(ReportingError):
    """Raised when a backend answers with an unexpected status or body."""

    def __init__(self, operation: str, status: int, body: object = None) -> None:
        super().__init__(f"Failed to {operation}: {status} {body}")
        self.operation = operation
        self.status = status
        self.body = body


class AdapterStateError(ReportingError):
    """Raised when an adapter is used outside of its ready state."""


class CoordinatorClosedError(ReportingError):
    """Raised when the coordinator is used after finalize_all."""


class InvalidIdentifierError(ReportingError):
    """Raised when a resolved identifier has the wrong shape for its backend."""
