"""Domain models for warehouse transfer jobs."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Optional, Dict, Any, Union

from .exceptions import SubmissionError

DATASET_ID_RE = re.compile(r'^[A-Za-z0-9_]{1,1024}$')


def validate_dataset_id(dataset_id: str) -> str:
    """Return ``dataset_id`` if it is a valid dataset id, else raise SubmissionError."""
    if not dataset_id:
        raise SubmissionError("Dataset id is required")
    if not DATASET_ID_RE.match(dataset_id):
        raise SubmissionError(
            f"Invalid dataset id: {dataset_id!r} (letters, digits and underscores only)"
        )
    return dataset_id


def new_job_id() -> str:
    """Generate a client-side job identifier."""
    return f"job_{uuid.uuid4().hex}"


class JobKind(Enum):
    IMPORT = "IMPORT"
    EXPORT = "EXPORT"


class JobStatus(Enum):
    """Client-side view of a remote job status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)

    @property
    def rank(self) -> int:
        """Position along PENDING -> RUNNING -> DONE|ERROR."""
        return {
            JobStatus.PENDING: 0,
            JobStatus.RUNNING: 1,
            JobStatus.DONE: 2,
            JobStatus.ERROR: 2,
        }[self]


class DataFormat(Enum):
    """Data formats accepted for export and import."""

    CSV = "CSV"
    JSON = "JSON"
    AVRO = "AVRO"

    @property
    def api_value(self) -> str:
        """Format name understood by the warehouse API."""
        if self is DataFormat.JSON:
            return "NEWLINE_DELIMITED_JSON"
        return self.value

    @classmethod
    def parse(cls, value: Union[str, 'DataFormat']) -> 'DataFormat':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise SubmissionError(f"Invalid format: {value!r} (expected one of {choices})")

    @classmethod
    def from_path(cls, path: str) -> 'DataFormat':
        """Infer the format from a file extension, defaulting to CSV."""
        suffix = PurePath(path).suffix.lower()
        if suffix in ('.json', '.ndjson', '.jsonl'):
            return cls.JSON
        if suffix == '.avro':
            return cls.AVRO
        return cls.CSV


@dataclass(frozen=True)
class TableRef:
    """Reference to a table inside a dataset."""

    dataset: str
    table: str
    project_id: Optional[str] = None

    def __post_init__(self):
        validate_dataset_id(self.dataset)
        if not self.table:
            raise SubmissionError("Table id is required")

    def to_api(self, default_project: str) -> Dict[str, str]:
        return {
            'projectId': self.project_id or default_project,
            'datasetId': self.dataset,
            'tableId': self.table,
        }

    def __str__(self) -> str:
        if self.project_id:
            return f"{self.project_id}:{self.dataset}.{self.table}"
        return f"{self.dataset}.{self.table}"


@dataclass(frozen=True)
class StorageLocator:
    """Object in a storage bucket."""

    bucket: str
    object_name: str

    def __post_init__(self):
        if not self.bucket:
            raise SubmissionError("Storage bucket is required")
        if not self.object_name:
            raise SubmissionError("Storage object name is required")

    @property
    def uri(self) -> str:
        return f"gs://{self.bucket}/{self.object_name}"

    @classmethod
    def parse(cls, uri: str) -> 'StorageLocator':
        """Build a locator from a gs://bucket/object URI."""
        if not uri.startswith("gs://"):
            raise SubmissionError(f"Not a storage URI: {uri!r}")
        bucket, _, object_name = uri[len("gs://"):].partition("/")
        return cls(bucket=bucket, object_name=object_name)

    def __str__(self) -> str:
        return self.uri


@dataclass(frozen=True)
class LocalFileLocator:
    """File on the local filesystem; the path is kept verbatim."""

    path: str

    def __post_init__(self):
        if not self.path:
            raise SubmissionError("Local file path is required")

    @property
    def uri(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


SourceLocator = Union[LocalFileLocator, StorageLocator]


@dataclass(frozen=True)
class ExportRequest:
    """Export a table to a storage object."""

    table: TableRef
    destination: StorageLocator
    format: DataFormat = DataFormat.CSV
    gzip: bool = False

    def __post_init__(self):
        if not isinstance(self.table, TableRef):
            raise SubmissionError("Export source must be a table reference")
        if not isinstance(self.destination, StorageLocator):
            raise SubmissionError("Export destination must be a storage object")
        object.__setattr__(self, 'format', DataFormat.parse(self.format))
        if self.gzip and self.format is DataFormat.AVRO:
            raise SubmissionError("GZIP compression is not supported for AVRO exports")

    @property
    def kind(self) -> JobKind:
        return JobKind.EXPORT


@dataclass(frozen=True)
class ImportRequest:
    """Load a local file or a storage object into a table."""

    table: TableRef
    source: SourceLocator
    source_format: Optional[DataFormat] = None

    def __post_init__(self):
        if not isinstance(self.table, TableRef):
            raise SubmissionError("Import destination must be a table reference")
        if not isinstance(self.source, (LocalFileLocator, StorageLocator)):
            raise SubmissionError("Import source must be a local file or a storage object")
        if self.source_format is not None:
            object.__setattr__(self, 'source_format', DataFormat.parse(self.source_format))

    @property
    def kind(self) -> JobKind:
        return JobKind.IMPORT

    @property
    def is_local(self) -> bool:
        return isinstance(self.source, LocalFileLocator)

    @property
    def resolved_format(self) -> DataFormat:
        if self.source_format is not None:
            return self.source_format
        if isinstance(self.source, LocalFileLocator):
            return DataFormat.from_path(self.source.path)
        return DataFormat.from_path(self.source.object_name)


TransferRequest = Union[ExportRequest, ImportRequest]


@dataclass(frozen=True)
class JobError:
    """Failure reported by the remote service for a job."""

    message: str
    reason: Optional[str] = None
    location: Optional[str] = None

    def __str__(self) -> str:
        if self.reason:
            return f"{self.reason}: {self.message}"
        return self.message


@dataclass(frozen=True)
class Job:
    """A submitted remote job. Only the remote service changes its status."""

    job_id: str
    kind: JobKind
    status: JobStatus
    project_id: str
    location: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"Job {self.job_id} ({self.kind.value}, {self.status.value})"


@dataclass(frozen=True)
class JobSnapshot:
    """A point-in-time read of a job's status."""

    job_id: str
    status: JobStatus
    kind: Optional[JobKind] = None
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[JobError] = None
    observed_at: datetime = field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_done(self) -> bool:
        return self.status is JobStatus.DONE

    @property
    def is_error(self) -> bool:
        return self.status is JobStatus.ERROR

    def __str__(self) -> str:
        return f"Job {self.job_id}: {self.status.value}"


@dataclass(frozen=True)
class PollPolicy:
    """Bounds for a caller-driven wait loop."""

    interval: float = 5.0
    timeout: float = 600.0
    max_attempts: Optional[int] = None
    transport_retries: int = 3
    backoff_seconds: float = 1.0

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("Poll interval cannot be negative")
        if self.timeout <= 0:
            raise ValueError("Poll timeout must be positive")
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ValueError("Max attempts must be positive")
        if self.transport_retries < 0:
            raise ValueError("Transport retries cannot be negative")
