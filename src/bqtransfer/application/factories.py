"""Factory wiring clients and services from settings."""

from typing import Optional

from bqtransfer.application.catalog import CatalogService
from bqtransfer.application.poller import JobPoller
from bqtransfer.application.submitter import JobSubmitter
from bqtransfer.application.staging import StagingService
from bqtransfer.domain.storage import IStorageClient
from bqtransfer.domain.exceptions import ConfigurationError
from bqtransfer.domain.warehouse import IWarehouseClient
from bqtransfer.infrastructure.config import Settings
from bqtransfer.infrastructure.storage import GCSClient
from bqtransfer.infrastructure.warehouse import BigQueryClient
from bqtransfer.shared.logging import get_logger


class ServiceFactory:
    """
    Builds the warehouse and storage clients once per invocation and hands
    them to the application services.

    The storage client is optional: without HMAC keys, bucket/object pairs
    are still turned into locators, only existence checks are skipped.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._logger = get_logger(__name__)
        self._warehouse: Optional[IWarehouseClient] = None
        self._storage: Optional[IStorageClient] = None
        self._storage_checked = False

    def warehouse(self) -> IWarehouseClient:
        if self._warehouse is None:
            self._warehouse = BigQueryClient.from_settings(
                self.settings,
                logger=get_logger('bqtransfer.warehouse')
            )
        return self._warehouse

    def storage(self) -> Optional[IStorageClient]:
        if not self._storage_checked:
            self._storage_checked = True
            credentials = self.settings.storage_credentials()
            if credentials.validate():
                self._storage = GCSClient(credentials, logger=get_logger('bqtransfer.storage'))
            else:
                self._logger.debug("Storage credentials not set; skipping object checks")
        return self._storage

    def submitter(self) -> JobSubmitter:
        return JobSubmitter(
            self.warehouse(),
            storage=self.storage(),
            logger=get_logger('bqtransfer.submitter')
        )

    def poller(self) -> JobPoller:
        return JobPoller(
            self.warehouse(),
            policy=self.settings.poll_policy(),
            logger=get_logger('bqtransfer.poller')
        )

    def catalog(self) -> CatalogService:
        return CatalogService(self.warehouse(), logger=get_logger('bqtransfer.catalog'))

    def staging(self) -> StagingService:
        """Upload and download helper; requires storage credentials."""
        storage = self.storage()
        if storage is None:
            raise ConfigurationError("Storage credentials not set (GCS_HMAC_KEY, GCS_HMAC_SECRET)")
        return StagingService(storage, logger=get_logger('bqtransfer.staging'))
