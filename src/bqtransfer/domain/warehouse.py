"""
Warehouse domain models and protocols.

Domain layer for the BigQuery integration.
"""

from dataclasses import dataclass
from typing import Optional, List, Protocol, Dict

from .exceptions import SubmissionError
from .models import (
    Job,
    JobSnapshot,
    TableRef,
    StorageLocator,
    SourceLocator,
    DataFormat,
)

_FIELD_TYPES = {
    'STRING', 'BYTES', 'INTEGER', 'INT64', 'FLOAT', 'FLOAT64', 'NUMERIC',
    'BIGNUMERIC', 'BOOLEAN', 'BOOL', 'TIMESTAMP', 'DATE', 'TIME', 'DATETIME',
    'GEOGRAPHY', 'JSON', 'RECORD', 'STRUCT',
}


@dataclass(frozen=True)
class SchemaField:
    """Column definition for a new table."""
    name: str
    field_type: str = 'STRING'
    mode: str = 'NULLABLE'

    def to_api(self) -> Dict[str, str]:
        return {'name': self.name, 'type': self.field_type, 'mode': self.mode}


def parse_schema(schema: Optional[str]) -> List[SchemaField]:
    """
    Parse a compact schema string such as ``"Name:string, Age:integer"``.

    A field without a type defaults to STRING.

    Raises:
        SubmissionError: On an empty field name or unknown type
    """
    if not schema:
        return []

    fields = []
    for part in schema.split(','):
        part = part.strip()
        if not part:
            continue
        name, _, field_type = part.partition(':')
        name = name.strip()
        field_type = (field_type.strip() or 'STRING').upper()
        if not name:
            raise SubmissionError(f"Invalid schema field: {part!r}")
        if field_type not in _FIELD_TYPES:
            raise SubmissionError(f"Unknown field type {field_type!r} for {name!r}")
        fields.append(SchemaField(name=name, field_type=field_type))
    return fields


@dataclass
class DatasetInfo:
    """Warehouse dataset."""
    dataset_id: str
    project_id: str
    location: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.project_id}:{self.dataset_id}"


@dataclass
class TableInfo:
    """Warehouse table."""
    table_id: str
    dataset_id: str
    project_id: str
    table_type: Optional[str] = None
    num_bytes: Optional[int] = None
    num_rows: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.project_id}:{self.dataset_id}.{self.table_id}"


@dataclass
class ProjectInfo:
    """Cloud project visible to the configured credentials."""
    project_id: str
    name: Optional[str] = None
    state: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.project_id} ({self.name or 'unnamed'})"


class IWarehouseClient(Protocol):
    """Protocol for the warehouse API client."""

    project_id: Optional[str]

    def create_export_job(
        self,
        table: TableRef,
        destination: StorageLocator,
        data_format: DataFormat,
        gzip: bool,
        job_id: str
    ) -> Job:
        """
        Start an extract job writing a table to a storage object.

        Returns:
            The created job as reported by the service
        """
        ...

    def create_import_job(
        self,
        table: TableRef,
        source: SourceLocator,
        data_format: DataFormat,
        job_id: str
    ) -> Job:
        """
        Start a load job reading a local file or a storage object into a table.

        Returns:
            The created job as reported by the service
        """
        ...

    def get_job(self, job_id: str) -> JobSnapshot:
        """
        Read the current status of a job.

        Raises:
            NotFoundError: If the service has no record of the job
        """
        ...

    def create_dataset(self, dataset_id: str) -> DatasetInfo:
        ...

    def list_datasets(self) -> List[DatasetInfo]:
        ...

    def delete_dataset(self, dataset_id: str, delete_contents: bool = False) -> None:
        ...

    def create_table(self, table: TableRef, schema: Optional[List[SchemaField]] = None) -> TableInfo:
        ...

    def list_tables(self, dataset_id: str) -> List[TableInfo]:
        ...

    def get_table(self, table: TableRef) -> TableInfo:
        ...

    def delete_table(self, table: TableRef) -> None:
        ...

    def list_projects(self) -> List[ProjectInfo]:
        ...
