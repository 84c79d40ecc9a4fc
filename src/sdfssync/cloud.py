"""Google Cloud Storage sink and bucket provisioning."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from .config import GCSConfig
from .events import ChangeEvent
from .remote import RemoteStore
from .sinks import TransferError

logger = logging.getLogger(__name__)


class ProvisioningError(Exception):
    """Raised when the destination bucket cannot be found or created."""


def create_client(settings: GCSConfig) -> storage.Client:
    """Build a storage client from a service account file, or from the ambient credentials."""

    project = settings.project_id or None
    try:
        if settings.credentials:
            return storage.Client.from_service_account_json(settings.credentials, project=project)
        return storage.Client(project=project)
    except (OSError, ValueError, auth_exceptions.GoogleAuthError) as exc:
        raise ProvisioningError(f"Unable to create storage client: {exc}") from exc


def provision_bucket(client: Any, settings: GCSConfig) -> Any:
    """Make sure the configured bucket exists, creating it in ``settings.region`` if not."""

    if not settings.bucket:
        raise ProvisioningError("BucketName entered is empty")

    try:
        for existing in client.list_buckets(project=settings.project_id or None):
            if existing.name == settings.bucket:
                logger.info("Bucket %s exists", settings.bucket)
                return client.bucket(settings.bucket)
    except gcs_exceptions.GoogleAPIError as exc:
        raise ProvisioningError(
            f"Issues listing buckets for project {settings.project_id!r}: {exc}. Double check project id"
        ) from exc

    try:
        bucket = client.create_bucket(
            settings.bucket,
            project=settings.project_id or None,
            location=settings.region,
        )
    except gcs_exceptions.GoogleAPIError as exc:
        raise ProvisioningError(f"Failed to create bucket {settings.bucket}: {exc}") from exc

    logger.info("Bucket %s created in %s", settings.bucket, settings.region)
    return bucket


class CloudUploadSink:
    """Copies each dispatched file into a bucket object keyed by its store path."""

    name = "gcs"

    def __init__(self, store: RemoteStore, bucket: Any, temp_dir: Path):
        self._store = store
        self._bucket = bucket
        self._temp_dir = Path(temp_dir)

    def sync(self, event: ChangeEvent) -> None:
        fd, temp_name = tempfile.mkstemp(prefix="sdfs", dir=str(self._temp_dir))
        os.close(fd)
        try:
            try:
                self._store.download(event.file_path, temp_name)
            except Exception as exc:
                raise TransferError(event.file_path, "download", exc) from exc
            self._upload(event.file_path, temp_name)
        finally:
            _remove_quietly(temp_name)

        logger.info("Blob %s uploaded to %s", event.file_path, self._bucket.name)

    def _upload(self, key: str, local_path: str) -> None:
        # ``key`` is only ever replaced by a copy of a fully closed staging object.
        staging = self._bucket.blob(f"{key}.{Path(local_path).name}.part")
        writer = None
        try:
            with open(local_path, "rb") as source:
                writer = staging.open("wb")
                shutil.copyfileobj(source, writer)
        except Exception as exc:
            if writer is not None:
                self._discard(staging, writer)
            raise TransferError(key, "upload", exc) from exc

        try:
            writer.close()
        except Exception as exc:
            _delete_quietly(staging)
            raise TransferError(key, "close", exc) from exc

        try:
            self._bucket.copy_blob(staging, self._bucket, key)
        except gcs_exceptions.GoogleAPIError as exc:
            raise TransferError(key, "publish", exc) from exc
        finally:
            _delete_quietly(staging)

    def _discard(self, staging: Any, writer: Any) -> None:
        """Finish and drop an abandoned staging object; ``key`` itself is never touched."""

        try:
            writer.close()
        except Exception as exc:
            logger.debug("Closing abandoned writer for %s failed: %s", staging.name, exc)
        _delete_quietly(staging)


def _delete_quietly(blob: Any) -> None:
    try:
        blob.delete()
    except gcs_exceptions.NotFound:
        pass
    except gcs_exceptions.GoogleAPIError as exc:
        logger.warning("Could not remove staging object %s: %s", blob.name, exc)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
