from typing import List, Optional

from attrs import define


class ReconcileError(Exception):
    """
    Base class of all errors raised by the reconciliation engine.
    """

    retryable: bool = False


class ValidationError(ReconcileError):
    """
    A declared value can not be expanded into its wire representation.
    Raised before anything is sent to the remote API.
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.field_name = field_name


class InvalidReferenceError(ValidationError):
    """
    A reference field (network, subnetwork, region, ...) does not match any of the accepted shapes.
    """


class NoPatternMatchedError(ValidationError):
    def __init__(self, import_id: str, patterns: List[str]) -> None:
        super().__init__(f"Import id {import_id!r} does not match any of the expected formats: {', '.join(patterns)}")
        self.import_id = import_id
        self.patterns = patterns


class TransportError(ReconcileError):
    """
    The remote API could not be reached or answered with an http error.
    """

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class NotFoundError(TransportError):
    """
    The remote object does not exist (http status 404).
    """


@define(frozen=True)
class OperationErrorDetail:
    code: Optional[str] = None
    message: Optional[str] = None
    location: Optional[str] = None

    def __str__(self) -> str:
        location = f" ({self.location})" if self.location else ""
        return f"{self.code}: {self.message}{location}"


class OperationError(ReconcileError):
    """
    A long-running operation finished, but the server reported it as failed.
    """

    def __init__(self, operation_name: Optional[str], details: List[OperationErrorDetail]) -> None:
        summary = ", ".join(str(d) for d in details) or "unknown error"
        super().__init__(f"Operation {operation_name} failed: {summary}")
        self.operation_name = operation_name
        self.details = details


class OperationTimeoutError(ReconcileError, TimeoutError):
    """
    The operation did not reach a terminal state before the deadline.
    The state of the remote object is unknown: it might or might not exist.
    """

    retryable = True

    def __init__(self, operation_name: Optional[str], timeout_seconds: float, last_status: Optional[str]) -> None:
        super().__init__(
            f"Operation {operation_name} did not finish within {timeout_seconds:.0f}s (last status: {last_status}). "
            "The state of the remote object is unknown."
        )
        self.operation_name = operation_name
        self.timeout_seconds = timeout_seconds
        self.last_status = last_status
