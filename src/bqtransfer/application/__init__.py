"""Application layer package."""

from bqtransfer.application.submitter import JobSubmitter
from bqtransfer.application.poller import JobPoller, JobHandle
from bqtransfer.application.catalog import CatalogService
from bqtransfer.application.staging import StagingService
from bqtransfer.application.factories import ServiceFactory

__all__ = ["JobSubmitter", "JobPoller", "JobHandle", "CatalogService", "StagingService",
           "ServiceFactory"]
