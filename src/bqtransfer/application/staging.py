"""Moving files between the local disk and Cloud Storage around jobs."""

from pathlib import Path
from typing import Optional, List
import logging

from bqtransfer.domain.models import JobKind, JobSnapshot, StorageLocator
from bqtransfer.domain.storage import IStorageClient
from bqtransfer.domain.exceptions import SubmissionError, NotFoundError


class StagingService:
    """
    Uploads local files ahead of an import and downloads the objects an
    export wrote.
    """

    def __init__(self, storage: IStorageClient, logger: Optional[logging.Logger] = None):
        self._storage = storage
        self._logger = logger or logging.getLogger(__name__)

    def stage(self, local_path: str, bucket: str, object_name: Optional[str] = None) -> StorageLocator:
        """
        Upload ``local_path`` to ``bucket``.

        The object is named after the file unless ``object_name`` is given.

        Raises:
            SubmissionError: Local file missing
        """
        locator = self._storage.locate(bucket, object_name or Path(local_path).name)
        uploaded = self._storage.upload_file(Path(local_path), locator)
        self._logger.info(f"Staged {local_path} as {uploaded}")
        return locator

    def fetch(self, snapshot: JobSnapshot, target_dir: Path) -> List[Path]:
        """
        Download every object a finished export wrote into ``target_dir``.

        Wildcard destinations (``gs://b/part-*.csv``) are expanded by listing
        the objects sharing the prefix before the ``*``.

        Raises:
            SubmissionError: Snapshot is not a finished export
            NotFoundError: A destination matched no objects
        """
        if not snapshot.is_done or snapshot.kind is not JobKind.EXPORT:
            raise SubmissionError(f"Job {snapshot.job_id} is not a finished export")

        target_dir = Path(target_dir)
        downloaded = []
        for uri in (snapshot.metadata or {}).get('destination_uris', []):
            for locator in self._expand(StorageLocator.parse(uri)):
                target = target_dir / Path(locator.object_name).name
                downloaded.append(self._storage.download_file(locator, target))

        self._logger.info(f"Fetched {len(downloaded)} file(s) for job {snapshot.job_id}")
        return downloaded

    def _expand(self, locator: StorageLocator) -> List[StorageLocator]:
        if '*' not in locator.object_name:
            return [locator]

        prefix = locator.object_name.split('*', 1)[0]
        objects = self._storage.list_objects(locator.bucket, prefix=prefix)
        if not objects:
            raise NotFoundError(f"No objects match {locator.uri}", status_code=404)
        return [obj.locator for obj in objects]
