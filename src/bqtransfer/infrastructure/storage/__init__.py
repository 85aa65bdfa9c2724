"""Storage infrastructure."""

from bqtransfer.infrastructure.storage.gcs_client import GCSClient

__all__ = ['GCSClient']
