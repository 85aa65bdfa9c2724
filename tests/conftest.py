"""Shared fixtures: a scripted warehouse, a fake clock and HTTP responses."""

import json

import pytest
import requests

from bqtransfer.domain.models import Job, JobKind, JobStatus, JobSnapshot, JobError
from bqtransfer.domain.exceptions import NotFoundError


class FakeWarehouse:
    """In-memory warehouse whose job statuses follow a script."""

    project_id = 'test-project'

    def __init__(self):
        self.jobs = {}
        self.get_calls = []
        self.submitted = []
        self.insert_status = JobStatus.PENDING

    def script(self, job_id, *steps):
        """Each get_job pops the next step; the last one repeats."""
        self.jobs[job_id] = list(steps)

    def create_export_job(self, table, destination, data_format, gzip, job_id):
        self.submitted.append(('export', table, destination, data_format, gzip, job_id))
        return Job(job_id=job_id, kind=JobKind.EXPORT, status=self.insert_status,
                   project_id=self.project_id)

    def create_import_job(self, table, source, data_format, job_id):
        self.submitted.append(('import', table, source, data_format, job_id))
        return Job(job_id=job_id, kind=JobKind.IMPORT, status=self.insert_status,
                   project_id=self.project_id)

    def get_job(self, job_id):
        self.get_calls.append(job_id)
        if job_id not in self.jobs:
            raise NotFoundError(f"Not found: Job {self.project_id}:{job_id}", status_code=404)
        steps = self.jobs[job_id]
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def snapshot(job_id, status, kind=JobKind.EXPORT, metadata=None, error=None):
    if status is JobStatus.ERROR and error is None:
        error = JobError(message="Table not found", reason="notFound")
    return JobSnapshot(job_id=job_id, status=status, kind=kind, metadata=metadata, error=error)


@pytest.fixture
def fake_warehouse():
    return FakeWarehouse()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_snapshot():
    return snapshot


@pytest.fixture
def make_response():
    """Build real requests.Response objects for a patched session."""
    def _make(status_code=200, payload=None, reason=None):
        response = requests.Response()
        response.status_code = status_code
        response.reason = reason or ('OK' if status_code < 400 else 'Error')
        response._content = json.dumps(payload).encode('utf-8') if payload is not None else b''
        response.headers['Content-Type'] = 'application/json'
        return response
    return _make


@pytest.fixture
def job_resource():
    """Build a BigQuery job resource."""
    def _make(job_id='job_abc123', state='RUNNING', kind='extract', error_result=None,
              project='test-project', statistics=None):
        if kind == 'extract':
            configuration = {'extract': {
                'sourceTable': {'projectId': project, 'datasetId': 'github_samples', 'tableId': 'natality'},
                'destinationUris': ['gs://sample-bigquery-export/data.json'],
                'destinationFormat': 'NEWLINE_DELIMITED_JSON',
            }}
        else:
            configuration = {'load': {
                'destinationTable': {'projectId': project, 'datasetId': 'my_dataset', 'tableId': 'my_table'},
                'sourceFormat': 'CSV',
            }}
        status = {'state': state}
        if error_result:
            status['errorResult'] = error_result
        return {
            'kind': 'bigquery#job',
            'id': f"{project}:US.{job_id}",
            'jobReference': {'projectId': project, 'jobId': job_id, 'location': 'US'},
            'configuration': configuration,
            'status': status,
            'statistics': statistics or {'creationTime': '1700000000000'},
        }
    return _make
