"""Domain exceptions for warehouse jobs and catalog operations."""

from typing import Optional


class WarehouseError(Exception):
    """Base exception for all warehouse and storage errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SubmissionError(WarehouseError):
    """Raised when a job request is malformed or rejected synchronously."""
    pass


class NotFoundError(WarehouseError):
    """Raised when a job, dataset, table or object does not exist."""
    pass


class TransportError(WarehouseError):
    """Raised when the remote service cannot be reached (network, auth, 5xx)."""
    pass


class RemoteJobError(WarehouseError):
    """Raised when a job reached the terminal ERROR status."""

    def __init__(self, job_id: str, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id
        self.reason = reason


class PollTimeoutError(WarehouseError):
    """Raised when a wait loop runs out of time or attempts."""

    def __init__(self, job_id: str, message: str, last_snapshot=None):
        super().__init__(message)
        self.job_id = job_id
        self.last_snapshot = last_snapshot


class ConfigurationError(WarehouseError):
    """Raised when configuration is invalid."""
    pass
