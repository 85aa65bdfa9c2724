"""Job submission for table exports and file imports."""

from typing import Optional, Callable, Union
import logging

from bqtransfer.domain.models import (
    new_job_id,
    Job,
    JobStatus,
    TableRef,
    StorageLocator,
    LocalFileLocator,
    DataFormat,
    ExportRequest,
    ImportRequest,
    TransferRequest,
)
from bqtransfer.domain.warehouse import IWarehouseClient
from bqtransfer.domain.storage import IStorageClient
from bqtransfer.domain.exceptions import SubmissionError, NotFoundError


class JobSubmitter:
    """
    Turns transfer requests into remote jobs.

    The returned Job is always PENDING or RUNNING; the terminal outcome is
    observed through the poller.
    """

    def __init__(
        self,
        warehouse: IWarehouseClient,
        storage: Optional[IStorageClient] = None,
        logger: Optional[logging.Logger] = None,
        job_id_factory: Callable[[], str] = new_job_id
    ):
        self._warehouse = warehouse
        self._storage = storage
        self._logger = logger or logging.getLogger(__name__)
        self._job_id_factory = job_id_factory

    def submit(self, request: TransferRequest) -> Job:
        """
        Submit an export or import request.

        Raises:
            SubmissionError: Malformed request or synchronous rejection
            NotFoundError: Missing table, dataset or source object
            TransportError: Service unreachable
        """
        job_id = self._job_id_factory()
        if not job_id:
            raise SubmissionError("Job id factory returned an empty id")

        if isinstance(request, ExportRequest):
            job = self._warehouse.create_export_job(
                request.table,
                request.destination,
                request.format,
                request.gzip,
                job_id
            )
        elif isinstance(request, ImportRequest):
            self._check_source(request)
            job = self._warehouse.create_import_job(
                request.table,
                request.source,
                request.resolved_format,
                job_id
            )
        else:
            raise SubmissionError(f"Unsupported request type: {type(request).__name__}")

        if job.status.is_terminal:
            # Finished before we asked; the poller reports the outcome
            self._logger.debug(f"Job {job.job_id} reported {job.status.value} at submission")
            job = Job(
                job_id=job.job_id,
                kind=job.kind,
                status=JobStatus.RUNNING,
                project_id=job.project_id,
                location=job.location,
                created_at=job.created_at,
            )

        self._logger.info(f"Submitted {job.kind.value.lower()} job {job.job_id} ({job.status.value})")
        return job

    def _check_source(self, request: ImportRequest) -> None:
        if not isinstance(request.source, StorageLocator) or self._storage is None:
            return
        if not self._storage.object_exists(request.source):
            raise NotFoundError(f"Source object not found: {request.source.uri}", status_code=404)

    def export_table(
        self,
        bucket: str,
        file: str,
        dataset: str,
        table: str,
        data_format: Union[str, DataFormat] = DataFormat.CSV,
        gzip: bool = False
    ) -> Job:
        """Export ``dataset.table`` to ``gs://bucket/file``."""
        destination = (
            self._storage.locate(bucket, file) if self._storage
            else StorageLocator(bucket=bucket, object_name=file)
        )
        request = ExportRequest(
            table=TableRef(dataset=dataset, table=table),
            destination=destination,
            format=data_format or DataFormat.CSV,
            gzip=gzip,
        )
        return self.submit(request)

    def import_file(
        self,
        dataset: str,
        table: str,
        file: str,
        bucket: Optional[str] = None,
        data_format: Optional[Union[str, DataFormat]] = None
    ) -> Job:
        """
        Load ``file`` into ``dataset.table``.

        Without a bucket the file is local and its path is used verbatim.
        """
        if bucket:
            source = (
                self._storage.locate(bucket, file) if self._storage
                else StorageLocator(bucket=bucket, object_name=file)
            )
        else:
            source = LocalFileLocator(path=file)

        request = ImportRequest(
            table=TableRef(dataset=dataset, table=table),
            source=source,
            source_format=data_format,
        )
        return self.submit(request)
