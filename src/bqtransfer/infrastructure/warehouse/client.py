"""
BigQuery API client implementation.

Infrastructure layer for the warehouse integration, speaking the
BigQuery REST API (v2) through a requests session.
"""

import json
import uuid
from pathlib import Path
from typing import List, Dict, Any, Optional, Iterator, Type
from urllib.parse import quote
import logging

import requests
from requests.exceptions import RequestException

from bqtransfer.domain.models import (
    Job,
    JobKind,
    JobStatus,
    JobError,
    JobSnapshot,
    TableRef,
    StorageLocator,
    LocalFileLocator,
    SourceLocator,
    DataFormat,
)
from bqtransfer.domain.warehouse import (
    SchemaField,
    DatasetInfo,
    TableInfo,
    ProjectInfo,
)
from bqtransfer.domain.exceptions import (
    WarehouseError,
    SubmissionError,
    NotFoundError,
    TransportError,
    ConfigurationError,
)
from bqtransfer.infrastructure.config.loader import (
    Settings,
    DEFAULT_API_BASE,
    DEFAULT_UPLOAD_BASE,
    DEFAULT_RESOURCE_MANAGER_BASE,
)

# Statuses worth another try later: auth hiccups, throttling, server side failures
_TRANSPORT_STATUSES = {401, 403, 408, 429}


def parse_job_resource(resource: Dict[str, Any]) -> JobSnapshot:
    """
    Convert a job resource returned by the API into a snapshot.

    DONE with an ``errorResult`` is reported as ERROR; the remote message is
    kept verbatim.

    Raises:
        WarehouseError: If the resource has no recognizable state
    """
    reference = resource.get('jobReference') or {}
    job_id = reference.get('jobId') or resource.get('id', '')
    status = resource.get('status') or {}
    state = status.get('state')
    error_result = status.get('errorResult')
    configuration = resource.get('configuration') or {}
    kind = _job_kind(configuration)

    if state == 'DONE':
        if error_result:
            return JobSnapshot(
                job_id=job_id,
                kind=kind,
                status=JobStatus.ERROR,
                error=JobError(
                    message=error_result.get('message', 'Unknown error'),
                    reason=error_result.get('reason'),
                    location=error_result.get('location'),
                ),
            )
        return JobSnapshot(
            job_id=job_id,
            kind=kind,
            status=JobStatus.DONE,
            metadata=_job_metadata(resource, kind),
        )

    if state in ('PENDING', 'RUNNING'):
        return JobSnapshot(job_id=job_id, kind=kind, status=JobStatus(state))

    raise WarehouseError(f"Unexpected state {state!r} for job {job_id}")


def _job_kind(configuration: Dict[str, Any]) -> Optional[JobKind]:
    if 'extract' in configuration:
        return JobKind.EXPORT
    if 'load' in configuration:
        return JobKind.IMPORT
    return None


def _segment(value: str) -> str:
    """Quote one URL path segment."""
    return quote(str(value), safe="")


def _format_table(ref: Dict[str, Any]) -> str:
    return f"{ref.get('projectId')}:{ref.get('datasetId')}.{ref.get('tableId')}"


def _job_metadata(resource: Dict[str, Any], kind: Optional[JobKind]) -> Dict[str, Any]:
    """Result metadata surfaced for a finished job."""
    configuration = resource.get('configuration') or {}
    statistics = resource.get('statistics') or {}
    metadata: Dict[str, Any] = {
        'job_id': (resource.get('jobReference') or {}).get('jobId'),
        'kind': kind.value if kind else None,
        'creation_time': statistics.get('creationTime'),
        'start_time': statistics.get('startTime'),
        'end_time': statistics.get('endTime'),
    }

    if kind is JobKind.EXPORT:
        extract = configuration.get('extract', {})
        metadata['source_table'] = _format_table(extract.get('sourceTable', {}))
        metadata['destination_uris'] = list(extract.get('destinationUris', []))
        metadata['destination_format'] = extract.get('destinationFormat')
        counts = (statistics.get('extract') or {}).get('destinationUriFileCounts')
        if counts is not None:
            metadata['file_counts'] = [int(c) for c in counts]
    elif kind is JobKind.IMPORT:
        load = configuration.get('load', {})
        metadata['destination_table'] = _format_table(load.get('destinationTable', {}))
        metadata['source_uris'] = list(load.get('sourceUris', []))
        load_stats = statistics.get('load') or {}
        if 'outputRows' in load_stats:
            metadata['output_rows'] = int(load_stats['outputRows'])
        if 'inputFiles' in load_stats:
            metadata['input_files'] = int(load_stats['inputFiles'])

    return metadata


class BigQueryClient:
    """
    BigQuery API client implementation.

    Uses requests library to interact with the BigQuery REST API. The access
    token is sent as-is; obtaining it is left to the caller.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        location: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        upload_base: str = DEFAULT_UPLOAD_BASE,
        resource_manager_base: str = DEFAULT_RESOURCE_MANAGER_BASE,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize BigQuery client.

        Args:
            project_id: Project that owns jobs and datasets
            access_token: OAuth2 bearer token
            location: Job location (required outside the US/EU multi-regions)
            api_base: REST API base URL
            upload_base: Media upload base URL
            resource_manager_base: Resource Manager base URL (project listing)
            timeout: Per-request timeout in seconds
            logger: Logger instance
        """
        self.project_id = project_id
        self.location = location
        self.api_base = api_base
        self.upload_base = upload_base
        self.resource_manager_base = resource_manager_base
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
        })
        if access_token:
            self.session.headers['Authorization'] = f"Bearer {access_token}"

    @classmethod
    def from_settings(cls, settings: Settings, logger: Optional[logging.Logger] = None) -> 'BigQueryClient':
        return cls(
            project_id=settings.project_id,
            access_token=settings.access_token,
            location=settings.location,
            api_base=settings.api_base,
            upload_base=settings.upload_base,
            resource_manager_base=settings.resource_manager_base,
            timeout=settings.request_timeout,
            logger=logger,
        )

    def _require_project(self) -> str:
        if not self.project_id:
            raise ConfigurationError("Project id not set (GCLOUD_PROJECT or --project-id)")
        return self.project_id

    def _request(
        self,
        method: str,
        endpoint: str,
        base: Optional[str] = None,
        rejection: Type[WarehouseError] = WarehouseError,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make API request.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to ``base``
            base: Base URL (default: REST API base)
            rejection: Error raised for other 4xx responses
            **kwargs: Additional request arguments

        Returns:
            Response JSON ({} for empty bodies)

        Raises:
            NotFoundError: On 404
            TransportError: On connection failures, auth failures, throttling and 5xx
            WarehouseError: ``rejection`` on any other error status
        """
        url = f"{(base or self.api_base).rstrip('/')}/{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except RequestException as e:
            error_msg = f"BigQuery API request failed: {e}"
            self.logger.error(error_msg)
            raise TransportError(error_msg) from e

        if response.ok:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(f"Invalid JSON from {method} {url}") from e

        message = self._error_message(response)
        code = response.status_code
        self.logger.debug(f"{method} {url} -> {code}: {message}")

        if code == 404:
            raise NotFoundError(message, status_code=code)
        if code in _TRANSPORT_STATUSES or code >= 500:
            raise TransportError(message, status_code=code)
        raise rejection(message, status_code=code)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract the service's error message, falling back to the status line."""
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            error = payload.get('error')
            if isinstance(error, dict) and error.get('message'):
                return error['message']
            if isinstance(error, str):
                return error
        return f"HTTP {response.status_code}: {response.reason}"

    def _paginate(
        self,
        endpoint: str,
        items_key: str,
        base: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Iterator[Dict[str, Any]]:
        params = dict(params or {})
        while True:
            response = self._request('GET', endpoint, base=base, params=params)
            for item in response.get(items_key, []):
                yield item
            token = response.get('nextPageToken')
            if not token:
                return
            params['pageToken'] = token

    def _job_reference(self, job_id: str) -> Dict[str, str]:
        reference = {'projectId': self._require_project(), 'jobId': job_id}
        if self.location:
            reference['location'] = self.location
        return reference

    def _submitted_job(self, resource: Dict[str, Any], kind: JobKind, job_id: str) -> Job:
        """Build a Job from a jobs.insert response."""
        snapshot = parse_job_resource(resource)
        reference = resource.get('jobReference') or {}
        if snapshot.is_error:
            raise SubmissionError(
                f"Job {job_id} was rejected: {snapshot.error}"
            )
        return Job(
            job_id=reference.get('jobId', job_id),
            kind=kind,
            status=snapshot.status,
            project_id=reference.get('projectId', self.project_id),
            location=reference.get('location', self.location),
        )

    # Jobs

    def create_export_job(
        self,
        table: TableRef,
        destination: StorageLocator,
        data_format: DataFormat,
        gzip: bool,
        job_id: str
    ) -> Job:
        """Start an extract job writing ``table`` to ``destination``."""
        project = self._require_project()
        extract: Dict[str, Any] = {
            'sourceTable': table.to_api(project),
            'destinationUris': [destination.uri],
            'destinationFormat': data_format.api_value,
        }
        if gzip:
            extract['compression'] = 'GZIP'

        body = {
            'jobReference': self._job_reference(job_id),
            'configuration': {'extract': extract},
        }

        self.logger.info(f"Submitting export {table} -> {destination.uri} as {data_format.value}")
        resource = self._request(
            'POST',
            f'projects/{_segment(project)}/jobs',
            json=body,
            rejection=SubmissionError
        )
        return self._submitted_job(resource, JobKind.EXPORT, job_id)

    def create_import_job(
        self,
        table: TableRef,
        source: SourceLocator,
        data_format: DataFormat,
        job_id: str
    ) -> Job:
        """Start a load job reading ``source`` into ``table``."""
        project = self._require_project()
        load: Dict[str, Any] = {
            'destinationTable': table.to_api(project),
            'sourceFormat': data_format.api_value,
        }
        body: Dict[str, Any] = {
            'jobReference': self._job_reference(job_id),
            'configuration': {'load': load},
        }

        if isinstance(source, StorageLocator):
            load['sourceUris'] = [source.uri]
            self.logger.info(f"Submitting import {source.uri} -> {table}")
            resource = self._request(
                'POST',
                f'projects/{_segment(project)}/jobs',
                json=body,
                rejection=SubmissionError
            )
            return self._submitted_job(resource, JobKind.IMPORT, job_id)

        if isinstance(source, LocalFileLocator):
            path = Path(source.path)
            if not path.is_file():
                raise SubmissionError(f"Local file not found: {source.path}")

            self.logger.info(f"Uploading {source.path} into {table}")
            payload, content_type = self._multipart_body(body, path.read_bytes())
            resource = self._request(
                'POST',
                f'projects/{_segment(project)}/jobs',
                base=self.upload_base,
                params={'uploadType': 'multipart'},
                data=payload,
                headers={'Content-Type': content_type},
                rejection=SubmissionError
            )
            return self._submitted_job(resource, JobKind.IMPORT, job_id)

        raise SubmissionError(f"Unsupported import source: {source!r}")

    @staticmethod
    def _multipart_body(metadata: Dict[str, Any], payload: bytes):
        """Build a multipart/related body: job metadata followed by the media."""
        boundary = f"==={uuid.uuid4().hex}==="
        head = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode('utf-8')
        tail = f"\r\n--{boundary}--\r\n".encode('utf-8')
        return head + payload + tail, f"multipart/related; boundary={boundary}"

    def get_job(self, job_id: str) -> JobSnapshot:
        """Read the current status of a job."""
        project = self._require_project()
        params = {'location': self.location} if self.location else None
        resource = self._request(
            'GET',
            f'projects/{_segment(project)}/jobs/{_segment(job_id)}',
            params=params
        )
        return parse_job_resource(resource)

    # Datasets

    def create_dataset(self, dataset_id: str) -> DatasetInfo:
        project = self._require_project()
        body: Dict[str, Any] = {
            'datasetReference': {'projectId': project, 'datasetId': dataset_id},
        }
        if self.location:
            body['location'] = self.location

        response = self._request('POST', f'projects/{_segment(project)}/datasets', json=body)
        self.logger.info(f"Created dataset {project}:{dataset_id}")
        return DatasetInfo(
            dataset_id=dataset_id,
            project_id=project,
            location=response.get('location', self.location),
        )

    def list_datasets(self) -> List[DatasetInfo]:
        project = self._require_project()
        datasets = []
        for item in self._paginate(f'projects/{_segment(project)}/datasets', 'datasets'):
            reference = item.get('datasetReference', {})
            datasets.append(DatasetInfo(
                dataset_id=reference.get('datasetId', ''),
                project_id=reference.get('projectId', project),
                location=item.get('location'),
            ))
        return datasets

    def delete_dataset(self, dataset_id: str, delete_contents: bool = False) -> None:
        project = self._require_project()
        params = {'deleteContents': 'true'} if delete_contents else None
        self._request(
            'DELETE',
            f'projects/{_segment(project)}/datasets/{_segment(dataset_id)}',
            params=params
        )
        self.logger.info(f"Deleted dataset {project}:{dataset_id}")

    # Tables

    def create_table(self, table: TableRef, schema: Optional[List[SchemaField]] = None) -> TableInfo:
        project = table.project_id or self._require_project()
        body: Dict[str, Any] = {'tableReference': table.to_api(project)}
        if schema:
            body['schema'] = {'fields': [f.to_api() for f in schema]}

        response = self._request(
            'POST',
            f'projects/{_segment(project)}/datasets/{_segment(table.dataset)}/tables',
            json=body
        )
        self.logger.info(f"Created table {table}")
        return self._table_info(response, table, project)

    def list_tables(self, dataset_id: str) -> List[TableInfo]:
        project = self._require_project()
        tables = []
        endpoint = f'projects/{_segment(project)}/datasets/{_segment(dataset_id)}/tables'
        for item in self._paginate(endpoint, 'tables'):
            reference = item.get('tableReference', {})
            tables.append(TableInfo(
                table_id=reference.get('tableId', ''),
                dataset_id=reference.get('datasetId', dataset_id),
                project_id=reference.get('projectId', project),
                table_type=item.get('type'),
            ))
        return tables

    def get_table(self, table: TableRef) -> TableInfo:
        project = table.project_id or self._require_project()
        response = self._request(
            'GET',
            f'projects/{_segment(project)}/datasets/{_segment(table.dataset)}/tables/{_segment(table.table)}'
        )
        return self._table_info(response, table, project)

    def delete_table(self, table: TableRef) -> None:
        project = table.project_id or self._require_project()
        self._request(
            'DELETE',
            f'projects/{_segment(project)}/datasets/{_segment(table.dataset)}/tables/{_segment(table.table)}'
        )
        self.logger.info(f"Deleted table {table}")

    @staticmethod
    def _table_info(resource: Dict[str, Any], table: TableRef, project: str) -> TableInfo:
        num_bytes = resource.get('numBytes')
        num_rows = resource.get('numRows')
        return TableInfo(
            table_id=table.table,
            dataset_id=table.dataset,
            project_id=project,
            table_type=resource.get('type'),
            num_bytes=int(num_bytes) if num_bytes is not None else None,
            num_rows=int(num_rows) if num_rows is not None else None,
        )

    # Projects

    def list_projects(self) -> List[ProjectInfo]:
        projects = []
        for item in self._paginate('projects', 'projects', base=self.resource_manager_base):
            projects.append(ProjectInfo(
                project_id=item.get('projectId', ''),
                name=item.get('name'),
                state=item.get('lifecycleState'),
            ))
        return projects
