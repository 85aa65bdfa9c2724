"""
Cloud Storage client implementation.

Infrastructure layer for Cloud Storage using boto3 against the
S3-compatible interoperability endpoint (HMAC keys).
"""

from pathlib import Path
from typing import List, Optional
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, BotoCoreError

from bqtransfer.domain.models import StorageLocator
from bqtransfer.domain.storage import StorageObject, StorageCredentials
from bqtransfer.domain.exceptions import (
    WarehouseError,
    SubmissionError,
    NotFoundError,
    TransportError,
    ConfigurationError,
)

_NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NoSuchBucket', 'NotFound'}
_TRANSPORT_CODES = {'403', 'AccessDenied', 'InvalidAccessKeyId', 'SignatureDoesNotMatch',
                    '429', 'SlowDown', '500', '503', 'InternalError', 'ServiceUnavailable'}


class GCSClient:
    """
    Cloud Storage client implementation using boto3.

    Besides transfers, it resolves bucket/object pairs to the locators the
    warehouse API expects.
    """

    def __init__(
        self,
        credentials: StorageCredentials,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize storage client.

        Args:
            credentials: HMAC credentials
            logger: Logger instance
        """
        self.credentials = credentials
        if not self.credentials.validate():
            raise ConfigurationError("Storage credentials not set (GCS_HMAC_KEY, GCS_HMAC_SECRET)")

        self.logger = logger or logging.getLogger(__name__)

        self.s3 = boto3.client(
            's3',
            endpoint_url=self.credentials.endpoint,
            aws_access_key_id=self.credentials.access_key,
            aws_secret_access_key=self.credentials.secret_key,
            region_name='auto',
            config=Config(
                request_checksum_calculation='when_required',
                response_checksum_validation='when_required',
            ),
        )

    def locate(self, bucket: str, object_name: str) -> StorageLocator:
        """Resolve a bucket and object name to a locator."""
        return StorageLocator(bucket=bucket, object_name=object_name)

    def object_exists(self, locator: StorageLocator) -> bool:
        """Check if object exists."""
        try:
            self.s3.head_object(Bucket=locator.bucket, Key=locator.object_name)
            return True
        except ClientError as e:
            if self._error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate(e, f"Failed to check {locator.uri}") from e
        except BotoCoreError as e:
            raise self._translate(e, f"Failed to check {locator.uri}") from e

    def list_objects(
        self,
        bucket: str,
        prefix: str = '',
        max_keys: int = 1000
    ) -> List[StorageObject]:
        """List objects in bucket."""
        self.logger.info(f"Listing objects: bucket={bucket}, prefix={prefix}")

        try:
            response = self.s3.list_objects_v2(
                Bucket=bucket,
                Prefix=prefix,
                MaxKeys=max_keys
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, f"Failed to list objects in {bucket}") from e

        objects = []
        for item in response.get('Contents', []):
            objects.append(StorageObject(
                bucket=bucket,
                key=item['Key'],
                size=item['Size'],
                last_modified=str(item.get('LastModified', '')),
                etag=item.get('ETag', '').strip('"')
            ))

        self.logger.info(f"Found {len(objects)} objects")
        return objects

    def upload_file(self, local_path: Path, locator: StorageLocator) -> StorageObject:
        """Upload a local file."""
        local_path = Path(local_path)
        if not local_path.is_file():
            raise SubmissionError(f"Local file not found: {local_path}")

        file_size = local_path.stat().st_size
        self.logger.info(f"Uploading {local_path} -> {locator.uri} ({file_size} bytes)")

        try:
            self.s3.upload_file(str(local_path), locator.bucket, locator.object_name)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, f"Upload to {locator.uri} failed") from e

        self.logger.info(f"Upload completed: {locator.uri}")
        return StorageObject(bucket=locator.bucket, key=locator.object_name, size=file_size)

    def download_file(self, locator: StorageLocator, local_path: Path) -> Path:
        """Download an object to a local path."""
        local_path = Path(local_path)
        self.logger.info(f"Downloading {locator.uri} -> {local_path}")

        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.s3.download_file(locator.bucket, locator.object_name, str(local_path))
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, f"Download of {locator.uri} failed") from e

        self.logger.info(f"Download completed: {local_path}")
        return local_path

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return str(error.response.get('Error', {}).get('Code', ''))

    def _translate(self, error: Exception, context: str) -> WarehouseError:
        """Map a botocore failure onto the domain error taxonomy."""
        message = f"{context}: {error}"
        self.logger.error(message)

        if isinstance(error, ClientError):
            code = self._error_code(error)
            if code in _NOT_FOUND_CODES:
                return NotFoundError(message, status_code=404)
            if code in _TRANSPORT_CODES:
                return TransportError(message)
            return WarehouseError(message)
        return TransportError(message)
