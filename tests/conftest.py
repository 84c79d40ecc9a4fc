"""
Pytest configuration and fixtures
"""
import io
import threading
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest

from sdfssync.events import ChangeEvent, NotificationBatch, SyncAction


class FakeStore:
    """In-memory remote store keyed by store-relative path."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files = dict(files or {})
        self.downloads: List[str] = []

    def download(self, remote_path: str, local_path: str) -> None:
        self.downloads.append(remote_path)
        if remote_path not in self.files:
            raise FileNotFoundError(remote_path)
        Path(local_path).write_bytes(self.files[remote_path])

    def volume_info(self):
        return {"files": len(self.files)}


class FakeSource:
    """Replays a fixed list of batches, then ends the stream."""

    def __init__(self, batches: Iterable[NotificationBatch]):
        self._batches = list(batches)

    def next_batch(self, cancel: threading.Event) -> Optional[NotificationBatch]:
        if not self._batches:
            return None
        return self._batches.pop(0)


class FakeWriter(io.BytesIO):
    def __init__(self, blob: "FakeBlob"):
        super().__init__()
        self._blob = blob

    def write(self, data):
        if self._blob.bucket.fail_write:
            raise OSError("connection reset")
        return super().write(data)

    def close(self):
        if self.closed:
            return
        data = self.getvalue()
        super().close()
        if self._blob.bucket.fail_close:
            raise OSError("finalize failed")
        self._blob.bucket.objects[self._blob.name] = data


class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str):
        self.bucket = bucket
        self.name = name

    def open(self, mode: str = "r"):
        assert mode == "wb"
        return FakeWriter(self)

    def delete(self):
        from google.api_core import exceptions

        if self.name not in self.bucket.objects:
            raise exceptions.NotFound(self.name)
        del self.bucket.objects[self.name]
        self.bucket.deleted.append(self.name)


class FakeBucket:
    def __init__(self, name: str):
        self.name = name
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_write = False
        self.fail_close = False
        self.fail_copy = False

    def blob(self, key: str) -> FakeBlob:
        return FakeBlob(self, key)

    def copy_blob(self, blob, destination_bucket, new_name):
        from google.api_core import exceptions

        if self.fail_copy:
            raise exceptions.ServiceUnavailable("rewrite unavailable")
        destination_bucket.objects[new_name] = self.objects[blob.name]
        return destination_bucket.blob(new_name)


class FakeStorageClient:
    """Minimal stand-in for ``google.cloud.storage.Client``."""

    def __init__(self, existing: Iterable[str] = ()):
        self.buckets = {name: FakeBucket(name) for name in existing}
        self.created: List[SimpleNamespace] = []

    def list_buckets(self, project=None):
        return iter([SimpleNamespace(name=name) for name in self.buckets])

    def bucket(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket(name))

    def create_bucket(self, name, project=None, location=None):
        self.created.append(SimpleNamespace(name=name, project=project, location=location))
        return self.bucket(name)


def make_event(path: str, action: SyncAction = SyncAction.WRITE, **kwargs) -> ChangeEvent:
    return ChangeEvent(file_path=path, action=action, **kwargs)


def make_batch(action: SyncAction, *paths: str, **kwargs) -> NotificationBatch:
    return NotificationBatch(action=action, events=tuple(make_event(p, action, **kwargs) for p in paths))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(
        {
            "docs/readme.txt": b"hello from sdfs\n",
            "tmp/cache/file.bin": b"\x00\x01\x02",
            "data/report.csv": b"a,b\n1,2\n",
        }
    )


@pytest.fixture
def storage_client() -> FakeStorageClient:
    return FakeStorageClient(existing=["sdfs-sync"])


@pytest.fixture
def bucket(storage_client: FakeStorageClient) -> FakeBucket:
    return storage_client.bucket("sdfs-sync")


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    path = tmp_path / "mirror"
    path.mkdir()
    return path
