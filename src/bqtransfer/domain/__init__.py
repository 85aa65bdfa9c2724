"""Domain layer package."""

from .models import (
    new_job_id,
    validate_dataset_id,
    JobKind,
    JobStatus,
    DataFormat,
    TableRef,
    StorageLocator,
    LocalFileLocator,
    ExportRequest,
    ImportRequest,
    JobError,
    Job,
    JobSnapshot,
    PollPolicy,
)
from .exceptions import (
    WarehouseError,
    SubmissionError,
    NotFoundError,
    TransportError,
    RemoteJobError,
    PollTimeoutError,
    ConfigurationError,
)
from .warehouse import (
    SchemaField,
    parse_schema,
    DatasetInfo,
    TableInfo,
    ProjectInfo,
    IWarehouseClient,
)
from .storage import StorageObject, StorageCredentials, IStorageClient

__all__ = [
    # Models
    "new_job_id",
    "validate_dataset_id",
    "JobKind",
    "JobStatus",
    "DataFormat",
    "TableRef",
    "StorageLocator",
    "LocalFileLocator",
    "ExportRequest",
    "ImportRequest",
    "JobError",
    "Job",
    "JobSnapshot",
    "PollPolicy",
    # Exceptions
    "WarehouseError",
    "SubmissionError",
    "NotFoundError",
    "TransportError",
    "RemoteJobError",
    "PollTimeoutError",
    "ConfigurationError",
    # Warehouse
    "SchemaField",
    "parse_schema",
    "DatasetInfo",
    "TableInfo",
    "ProjectInfo",
    "IWarehouseClient",
    # Storage
    "StorageObject",
    "StorageCredentials",
    "IStorageClient",
]
