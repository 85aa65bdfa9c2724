"""Dataset, table and project management."""

from typing import Optional, List
import logging

from bqtransfer.domain.models import TableRef, validate_dataset_id
from bqtransfer.domain.warehouse import (
    IWarehouseClient,
    DatasetInfo,
    TableInfo,
    ProjectInfo,
    parse_schema,
)


class CatalogService:
    """Thin operations over datasets, tables and projects."""

    def __init__(self, warehouse: IWarehouseClient, logger: Optional[logging.Logger] = None):
        self._warehouse = warehouse
        self._logger = logger or logging.getLogger(__name__)

    def create_dataset(self, dataset_id: str) -> DatasetInfo:
        return self._warehouse.create_dataset(validate_dataset_id(dataset_id))

    def list_datasets(self) -> List[DatasetInfo]:
        return self._warehouse.list_datasets()

    def delete_dataset(self, dataset_id: str, force: bool = False) -> None:
        self._warehouse.delete_dataset(validate_dataset_id(dataset_id), delete_contents=force)

    def dataset_size(self, dataset_id: str) -> int:
        """Total bytes stored across the dataset's tables."""
        total = 0
        for table in self._warehouse.list_tables(validate_dataset_id(dataset_id)):
            info = self._warehouse.get_table(TableRef(dataset=dataset_id, table=table.table_id))
            total += info.num_bytes or 0
        self._logger.debug(f"Dataset {dataset_id} holds {total} bytes")
        return total

    def create_table(self, dataset_id: str, table_id: str, schema: Optional[str] = None) -> TableInfo:
        """Create a table; ``schema`` uses the ``name:TYPE,name2:TYPE`` form."""
        fields = parse_schema(schema)
        return self._warehouse.create_table(TableRef(dataset=dataset_id, table=table_id), fields or None)

    def list_tables(self, dataset_id: str) -> List[TableInfo]:
        return self._warehouse.list_tables(validate_dataset_id(dataset_id))

    def delete_table(self, dataset_id: str, table_id: str) -> None:
        self._warehouse.delete_table(TableRef(dataset=dataset_id, table=table_id))

    def list_projects(self) -> List[ProjectInfo]:
        return self._warehouse.list_projects()
