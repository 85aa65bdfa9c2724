"""
Unit tests for service wiring.
"""

import pytest
from unittest.mock import patch

from bqtransfer.application.factories import ServiceFactory
from bqtransfer.application.staging import StagingService
from bqtransfer.domain.exceptions import ConfigurationError
from bqtransfer.infrastructure.config import Settings
from bqtransfer.infrastructure.storage import GCSClient
from bqtransfer.infrastructure.warehouse import BigQueryClient


class TestServiceFactory:

    def test_warehouse_built_once(self):
        factory = ServiceFactory(Settings(project_id='p', location='EU'))

        warehouse = factory.warehouse()

        assert isinstance(warehouse, BigQueryClient)
        assert warehouse.location == 'EU'
        assert factory.warehouse() is warehouse

    def test_storage_skipped_without_keys(self):
        assert ServiceFactory(Settings()).storage() is None

    @patch('bqtransfer.infrastructure.storage.gcs_client.boto3')
    def test_storage_with_keys(self, mock_boto3):
        factory = ServiceFactory(Settings(storage_key='k', storage_secret='s'))

        storage = factory.storage()

        assert isinstance(storage, GCSClient)
        assert factory.storage() is storage
        mock_boto3.client.assert_called_once()

    def test_poller_uses_settings_policy(self):
        factory = ServiceFactory(Settings(poll_interval=2, poll_timeout=20, transport_retries=1))

        policy = factory.poller().policy

        assert policy.interval == 2
        assert policy.timeout == 20
        assert policy.transport_retries == 1

    def test_staging_requires_storage(self):
        with pytest.raises(ConfigurationError, match="GCS_HMAC_KEY"):
            ServiceFactory(Settings()).staging()

    @patch('bqtransfer.infrastructure.storage.gcs_client.boto3')
    def test_staging_with_keys(self, mock_boto3):
        staging = ServiceFactory(Settings(storage_key='k', storage_secret='s')).staging()
        assert isinstance(staging, StagingService)
