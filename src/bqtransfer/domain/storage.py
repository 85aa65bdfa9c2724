"""
Object storage domain models and protocols.

Domain layer for Cloud Storage, reached through its S3-compatible API.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, List

from .models import StorageLocator

DEFAULT_STORAGE_ENDPOINT = "https://storage.googleapis.com"


@dataclass
class StorageObject:
    """Storage object metadata."""
    bucket: str
    key: str
    size: int
    last_modified: Optional[str] = None
    etag: Optional[str] = None

    @property
    def locator(self) -> StorageLocator:
        return StorageLocator(bucket=self.bucket, object_name=self.key)

    @property
    def name(self) -> str:
        """Get object name (basename)."""
        return Path(self.key).name

    def __str__(self) -> str:
        return f"gs://{self.bucket}/{self.key} ({self.size} bytes)"


@dataclass
class StorageCredentials:
    """HMAC credentials for the interoperability endpoint."""
    access_key: str
    secret_key: str
    endpoint: str = DEFAULT_STORAGE_ENDPOINT

    def validate(self) -> bool:
        """Check if credentials are set."""
        return bool(self.access_key and self.secret_key)


class IStorageClient(Protocol):
    """Protocol for the object storage client."""

    def locate(self, bucket: str, object_name: str) -> StorageLocator:
        """Resolve a bucket and object name to a locator."""
        ...

    def object_exists(self, locator: StorageLocator) -> bool:
        """
        Check if object exists.

        Args:
            locator: Object to check

        Returns:
            True if exists
        """
        ...

    def list_objects(self, bucket: str, prefix: str = '', max_keys: int = 1000) -> List[StorageObject]:
        """List objects in a bucket."""
        ...

    def upload_file(self, local_path: Path, locator: StorageLocator) -> StorageObject:
        """
        Upload a local file.

        Returns:
            Uploaded object metadata
        """
        ...

    def download_file(self, locator: StorageLocator, local_path: Path) -> Path:
        """
        Download an object to a local path.

        Returns:
            Downloaded file path
        """
        ...
