"""
Unit tests for the BigQuery client.
"""

import pytest
from unittest.mock import patch
from requests.exceptions import ConnectionError as RequestsConnectionError

from bqtransfer.infrastructure.warehouse.client import BigQueryClient, parse_job_resource
from bqtransfer.infrastructure.config import Settings
from bqtransfer.domain.models import (
    JobKind,
    JobStatus,
    TableRef,
    StorageLocator,
    LocalFileLocator,
    DataFormat,
)
from bqtransfer.domain.warehouse import SchemaField
from bqtransfer.domain.exceptions import (
    WarehouseError,
    SubmissionError,
    NotFoundError,
    TransportError,
    ConfigurationError,
)


@pytest.fixture
def client():
    return BigQueryClient(project_id='test-project', access_token='token-123')


class TestParseJobResource:
    """Test mapping of remote job resources onto snapshots."""

    def test_running(self, job_resource):
        snap = parse_job_resource(job_resource(state='RUNNING'))
        assert snap.status is JobStatus.RUNNING
        assert snap.kind is JobKind.EXPORT
        assert snap.metadata is None

    def test_pending(self, job_resource):
        assert parse_job_resource(job_resource(state='PENDING')).status is JobStatus.PENDING

    def test_done_export_metadata(self, job_resource):
        resource = job_resource(
            state='DONE',
            statistics={'extract': {'destinationUriFileCounts': ['1']}}
        )
        snap = parse_job_resource(resource)

        assert snap.status is JobStatus.DONE
        assert snap.metadata['destination_uris'] == ['gs://sample-bigquery-export/data.json']
        assert snap.metadata['source_table'] == 'test-project:github_samples.natality'
        assert snap.metadata['file_counts'] == [1]
        assert snap.error is None

    def test_done_import_metadata(self, job_resource):
        resource = job_resource(
            state='DONE',
            kind='load',
            statistics={'load': {'outputRows': '42', 'inputFiles': '1'}}
        )
        snap = parse_job_resource(resource)

        assert snap.kind is JobKind.IMPORT
        assert snap.metadata['destination_table'] == 'test-project:my_dataset.my_table'
        assert snap.metadata['output_rows'] == 42

    def test_done_with_error_result_is_error(self, job_resource):
        resource = job_resource(
            state='DONE',
            error_result={'reason': 'invalid', 'message': 'Error while reading data, error message: CSV table references column position 3'}
        )
        snap = parse_job_resource(resource)

        assert snap.status is JobStatus.ERROR
        assert snap.error.reason == 'invalid'
        assert snap.error.message == 'Error while reading data, error message: CSV table references column position 3'
        assert snap.metadata is None

    def test_unknown_state(self, job_resource):
        with pytest.raises(WarehouseError, match="Unexpected state"):
            parse_job_resource(job_resource(state='SUSPENDED'))


class TestBigQueryClientBasic:
    """Test BigQueryClient basic functionality."""

    def test_initialization(self, client):
        assert client.project_id == 'test-project'
        assert client.api_base == 'https://bigquery.googleapis.com/bigquery/v2'
        assert client.session.headers['Authorization'] == 'Bearer token-123'
        assert client.session.headers['Accept'] == 'application/json'

    def test_initialization_without_token(self):
        client = BigQueryClient(project_id='p')
        assert 'Authorization' not in client.session.headers

    def test_from_settings(self):
        settings = Settings(project_id='proj', location='EU', request_timeout=5.0)
        client = BigQueryClient.from_settings(settings)

        assert client.project_id == 'proj'
        assert client.location == 'EU'
        assert client.timeout == 5.0

    def test_missing_project_raises(self):
        client = BigQueryClient()
        with pytest.raises(ConfigurationError, match="Project id not set"):
            client.get_job('job_1')


class TestJobs:
    """Test job submission and status reads."""

    def test_create_export_job(self, client, make_response, job_resource):
        with patch.object(client.session, 'request',
                          return_value=make_response(200, job_resource(job_id='job_1', state='RUNNING'))) as mock_request:
            job = client.create_export_job(
                TableRef(dataset='github_samples', table='natality'),
                StorageLocator(bucket='sample-bigquery-export', object_name='data.json'),
                DataFormat.JSON,
                True,
                'job_1'
            )

        assert job.job_id == 'job_1'
        assert job.kind is JobKind.EXPORT
        assert job.status is JobStatus.RUNNING

        method, url = mock_request.call_args[0]
        body = mock_request.call_args[1]['json']
        assert method == 'POST'
        assert url == 'https://bigquery.googleapis.com/bigquery/v2/projects/test-project/jobs'
        assert body['jobReference'] == {'projectId': 'test-project', 'jobId': 'job_1'}
        extract = body['configuration']['extract']
        assert extract['sourceTable'] == {
            'projectId': 'test-project', 'datasetId': 'github_samples', 'tableId': 'natality'
        }
        assert extract['destinationUris'] == ['gs://sample-bigquery-export/data.json']
        assert extract['destinationFormat'] == 'NEWLINE_DELIMITED_JSON'
        assert extract['compression'] == 'GZIP'

    def test_create_export_job_with_location(self, make_response, job_resource):
        client = BigQueryClient(project_id='test-project', location='europe-west1')
        with patch.object(client.session, 'request',
                          return_value=make_response(200, job_resource(job_id='job_2'))) as mock_request:
            client.create_export_job(
                TableRef(dataset='d', table='t'),
                StorageLocator(bucket='b', object_name='o.csv'),
                DataFormat.CSV,
                False,
                'job_2'
            )

        body = mock_request.call_args[1]['json']
        assert body['jobReference']['location'] == 'europe-west1'
        assert 'compression' not in body['configuration']['extract']

    def test_create_export_job_rejected(self, client, make_response):
        payload = {'error': {'code': 400, 'message': 'Invalid extract destination URI'}}
        with patch.object(client.session, 'request', return_value=make_response(400, payload)):
            with pytest.raises(SubmissionError, match="Invalid extract destination URI") as exc_info:
                client.create_export_job(
                    TableRef(dataset='d', table='t'),
                    StorageLocator(bucket='b', object_name='o'),
                    DataFormat.CSV,
                    False,
                    'job_3'
                )
        assert exc_info.value.status_code == 400

    def test_create_export_job_error_at_insert(self, client, make_response, job_resource):
        resource = job_resource(
            job_id='job_4',
            state='DONE',
            error_result={'reason': 'invalid', 'message': 'Operation cannot be performed on a nested schema'}
        )
        with patch.object(client.session, 'request', return_value=make_response(200, resource)):
            with pytest.raises(SubmissionError, match="nested schema"):
                client.create_export_job(
                    TableRef(dataset='d', table='t'),
                    StorageLocator(bucket='b', object_name='o'),
                    DataFormat.CSV,
                    False,
                    'job_4'
                )

    def test_create_export_job_missing_table(self, client, make_response):
        payload = {'error': {'code': 404, 'message': 'Not found: Table test-project:d.t'}}
        with patch.object(client.session, 'request', return_value=make_response(404, payload)):
            with pytest.raises(NotFoundError, match="Not found: Table"):
                client.create_export_job(
                    TableRef(dataset='d', table='t'),
                    StorageLocator(bucket='b', object_name='o'),
                    DataFormat.CSV,
                    False,
                    'job_5'
                )

    def test_create_import_job_from_storage(self, client, make_response, job_resource):
        resource = job_resource(job_id='job_6', state='PENDING', kind='load')
        with patch.object(client.session, 'request', return_value=make_response(200, resource)) as mock_request:
            job = client.create_import_job(
                TableRef(dataset='my_dataset', table='my_table'),
                StorageLocator(bucket='my-bucket', object_name='data.csv'),
                DataFormat.CSV,
                'job_6'
            )

        assert job.kind is JobKind.IMPORT
        assert job.status is JobStatus.PENDING
        load = mock_request.call_args[1]['json']['configuration']['load']
        assert load['sourceUris'] == ['gs://my-bucket/data.csv']
        assert load['sourceFormat'] == 'CSV'

    def test_create_import_job_from_local_file(self, client, make_response, job_resource, tmp_path):
        data_file = tmp_path / "data.csv"
        data_file.write_bytes(b"Gandalf,2000,140.0\n")
        resource = job_resource(job_id='job_7', state='RUNNING', kind='load')

        with patch.object(client.session, 'request', return_value=make_response(200, resource)) as mock_request:
            job = client.create_import_job(
                TableRef(dataset='my_dataset', table='my_table'),
                LocalFileLocator(path=str(data_file)),
                DataFormat.CSV,
                'job_7'
            )

        assert job.job_id == 'job_7'
        method, url = mock_request.call_args[0]
        kwargs = mock_request.call_args[1]
        assert method == 'POST'
        assert url == 'https://bigquery.googleapis.com/upload/bigquery/v2/projects/test-project/jobs'
        assert kwargs['params'] == {'uploadType': 'multipart'}
        assert kwargs['headers']['Content-Type'].startswith('multipart/related; boundary=')
        assert b"Gandalf,2000,140.0" in kwargs['data']
        assert b'"sourceFormat": "CSV"' in kwargs['data']

    def test_create_import_job_missing_local_file(self, client, tmp_path):
        with patch.object(client.session, 'request') as mock_request:
            with pytest.raises(SubmissionError, match="Local file not found"):
                client.create_import_job(
                    TableRef(dataset='d', table='t'),
                    LocalFileLocator(path=str(tmp_path / "missing.csv")),
                    DataFormat.CSV,
                    'job_8'
                )
        mock_request.assert_not_called()

    def test_get_job(self, client, make_response, job_resource):
        with patch.object(client.session, 'request',
                          return_value=make_response(200, job_resource(job_id='job_9', state='DONE'))) as mock_request:
            snap = client.get_job('job_9')

        assert snap.status is JobStatus.DONE
        method, url = mock_request.call_args[0]
        assert method == 'GET'
        assert url.endswith('/projects/test-project/jobs/job_9')

    def test_get_job_not_found(self, client, make_response):
        payload = {'error': {'code': 404, 'message': 'Not found: Job test-project:job_12345ABCDE'}}
        with patch.object(client.session, 'request', return_value=make_response(404, payload)):
            with pytest.raises(NotFoundError) as exc_info:
                client.get_job('job_12345ABCDE')

        assert not isinstance(exc_info.value, TransportError)
        assert 'job_12345ABCDE' in str(exc_info.value)

    @pytest.mark.parametrize("status_code", [401, 403, 429, 500, 503])
    def test_get_job_transport_statuses(self, client, make_response, status_code):
        with patch.object(client.session, 'request', return_value=make_response(status_code, {})):
            with pytest.raises(TransportError):
                client.get_job('job_1')

    def test_get_job_connection_error(self, client):
        with patch.object(client.session, 'request', side_effect=RequestsConnectionError("connection refused")):
            with pytest.raises(TransportError, match="connection refused"):
                client.get_job('job_1')


class TestCatalog:
    """Test dataset, table and project endpoints."""

    def test_create_dataset(self, client, make_response):
        response = make_response(200, {'datasetReference': {'projectId': 'test-project', 'datasetId': 'd'},
                                       'location': 'US'})
        with patch.object(client.session, 'request', return_value=response) as mock_request:
            dataset = client.create_dataset('d')

        assert dataset.dataset_id == 'd'
        assert dataset.location == 'US'
        assert mock_request.call_args[1]['json'] == {
            'datasetReference': {'projectId': 'test-project', 'datasetId': 'd'}
        }

    def test_create_dataset_conflict(self, client, make_response):
        payload = {'error': {'code': 409, 'message': 'Already Exists: Dataset test-project:d'}}
        with patch.object(client.session, 'request', return_value=make_response(409, payload)):
            with pytest.raises(WarehouseError, match="Already Exists"):
                client.create_dataset('d')

    def test_list_datasets_paginates(self, client, make_response):
        pages = [
            make_response(200, {'datasets': [{'datasetReference': {'projectId': 'test-project', 'datasetId': 'a'}}],
                                'nextPageToken': 'next'}),
            make_response(200, {'datasets': [{'datasetReference': {'projectId': 'test-project', 'datasetId': 'b'}}]}),
        ]
        with patch.object(client.session, 'request', side_effect=pages) as mock_request:
            datasets = client.list_datasets()

        assert [d.dataset_id for d in datasets] == ['a', 'b']
        assert mock_request.call_args_list[1][1]['params'] == {'pageToken': 'next'}

    def test_list_datasets_empty(self, client, make_response):
        with patch.object(client.session, 'request', return_value=make_response(200, {})):
            assert client.list_datasets() == []

    def test_delete_dataset_with_contents(self, client, make_response):
        with patch.object(client.session, 'request', return_value=make_response(204)) as mock_request:
            client.delete_dataset('d', delete_contents=True)

        method, url = mock_request.call_args[0]
        assert method == 'DELETE'
        assert url.endswith('/projects/test-project/datasets/d')
        assert mock_request.call_args[1]['params'] == {'deleteContents': 'true'}

    def test_create_table_with_schema(self, client, make_response):
        with patch.object(client.session, 'request', return_value=make_response(200, {'type': 'TABLE'})) as mock_request:
            table = client.create_table(
                TableRef(dataset='d', table='t'),
                [SchemaField(name='Name'), SchemaField(name='Age', field_type='INTEGER')]
            )

        assert table.table_id == 't'
        body = mock_request.call_args[1]['json']
        assert body['schema']['fields'][1] == {'name': 'Age', 'type': 'INTEGER', 'mode': 'NULLABLE'}

    def test_list_tables(self, client, make_response):
        payload = {'tables': [
            {'tableReference': {'projectId': 'test-project', 'datasetId': 'd', 'tableId': 't1'}, 'type': 'TABLE'},
            {'tableReference': {'projectId': 'test-project', 'datasetId': 'd', 'tableId': 't2'}, 'type': 'VIEW'},
        ]}
        with patch.object(client.session, 'request', return_value=make_response(200, payload)):
            tables = client.list_tables('d')

        assert [t.table_id for t in tables] == ['t1', 't2']
        assert tables[1].table_type == 'VIEW'

    def test_get_table_sizes(self, client, make_response):
        payload = {'numBytes': '1000000', 'numRows': '10', 'type': 'TABLE'}
        with patch.object(client.session, 'request', return_value=make_response(200, payload)):
            table = client.get_table(TableRef(dataset='d', table='t'))

        assert table.num_bytes == 1000000
        assert table.num_rows == 10

    def test_delete_table_not_found(self, client, make_response):
        payload = {'error': {'code': 404, 'message': 'Not found: Table test-project:d.t'}}
        with patch.object(client.session, 'request', return_value=make_response(404, payload)):
            with pytest.raises(NotFoundError):
                client.delete_table(TableRef(dataset='d', table='t'))

    def test_list_projects(self, client, make_response):
        payload = {'projects': [{'projectId': 'foo', 'name': 'foo', 'lifecycleState': 'ACTIVE'}]}
        with patch.object(client.session, 'request', return_value=make_response(200, payload)) as mock_request:
            projects = client.list_projects()

        assert projects[0].project_id == 'foo'
        assert mock_request.call_args[0][1] == 'https://cloudresourcemanager.googleapis.com/v1/projects'

    def test_error_message_without_json(self, client, make_response):
        response = make_response(400, reason='Bad Request')
        response._content = b'<html>nope</html>'
        with patch.object(client.session, 'request', return_value=response):
            with pytest.raises(WarehouseError, match="HTTP 400: Bad Request"):
                client.create_dataset('d')

    def test_path_segments_are_quoted(self, client, make_response):
        with patch.object(client.session, 'request', return_value=make_response(204)) as mock_request:
            client.delete_dataset('my_dataset/tables/important')

        url = mock_request.call_args[0][1]
        assert url.endswith('/projects/test-project/datasets/my_dataset%2Ftables%2Fimportant')
