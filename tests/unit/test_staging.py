"""
Unit tests for staging uploads and export downloads.
"""

import pytest
from pathlib import Path
from unittest.mock import MagicMock

from bqtransfer.application.staging import StagingService
from bqtransfer.domain.models import JobKind, JobStatus, StorageLocator
from bqtransfer.domain.storage import StorageObject
from bqtransfer.domain.exceptions import SubmissionError, NotFoundError


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.locate.side_effect = lambda bucket, name: StorageLocator(bucket=bucket, object_name=name)
    storage.download_file.side_effect = lambda locator, target: Path(target)
    return storage


@pytest.fixture
def staging(storage):
    return StagingService(storage)


class TestStage:
    """Test uploads ahead of an import."""

    def test_stage_uses_file_name(self, staging, storage, tmp_path):
        local = tmp_path / "data.csv"
        local.write_text("Gandalf,2000,140.0\n")
        storage.upload_file.return_value = StorageObject(bucket='my-bucket', key='data.csv', size=19)

        locator = staging.stage(str(local), 'my-bucket')

        assert locator.uri == 'gs://my-bucket/data.csv'
        storage.upload_file.assert_called_once_with(local, locator)

    def test_stage_custom_object_name(self, staging, storage):
        locator = staging.stage('./data.csv', 'b', object_name='incoming/2024.csv')
        assert locator.object_name == 'incoming/2024.csv'

    def test_stage_missing_file_propagates(self, staging, storage):
        storage.upload_file.side_effect = SubmissionError("Local file not found: ./missing.csv")
        with pytest.raises(SubmissionError):
            staging.stage('./missing.csv', 'b')


class TestFetch:
    """Test downloads after an export."""

    def test_fetch_single_destination(self, staging, storage, make_snapshot, tmp_path):
        snap = make_snapshot('job_1', JobStatus.DONE,
                             metadata={'destination_uris': ['gs://sample-bigquery-export/exports/data.json']})

        paths = staging.fetch(snap, tmp_path)

        assert paths == [tmp_path / 'data.json']
        storage.download_file.assert_called_once_with(
            StorageLocator(bucket='sample-bigquery-export', object_name='exports/data.json'),
            tmp_path / 'data.json'
        )
        storage.list_objects.assert_not_called()

    def test_fetch_wildcard_lists_prefix(self, staging, storage, make_snapshot, tmp_path):
        storage.list_objects.return_value = [
            StorageObject(bucket='b', key='out/part-000.csv', size=10),
            StorageObject(bucket='b', key='out/part-001.csv', size=10),
        ]
        snap = make_snapshot('job_1', JobStatus.DONE, metadata={'destination_uris': ['gs://b/out/part-*.csv']})

        paths = staging.fetch(snap, tmp_path)

        storage.list_objects.assert_called_once_with('b', prefix='out/part-')
        assert [p.name for p in paths] == ['part-000.csv', 'part-001.csv']

    def test_fetch_wildcard_without_matches(self, staging, storage, make_snapshot, tmp_path):
        storage.list_objects.return_value = []
        snap = make_snapshot('job_1', JobStatus.DONE, metadata={'destination_uris': ['gs://b/out/*.csv']})

        with pytest.raises(NotFoundError, match="gs://b/out/\\*.csv"):
            staging.fetch(snap, tmp_path)

    def test_fetch_requires_finished_export(self, staging, storage, make_snapshot, tmp_path):
        running = make_snapshot('job_1', JobStatus.RUNNING)
        loaded = make_snapshot('job_2', JobStatus.DONE, kind=JobKind.IMPORT, metadata={})

        with pytest.raises(SubmissionError):
            staging.fetch(running, tmp_path)
        with pytest.raises(SubmissionError):
            staging.fetch(loaded, tmp_path)
        storage.download_file.assert_not_called()
