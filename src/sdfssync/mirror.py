"""Local filesystem mirror sink."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from .config import MirrorConfig
from .events import ChangeEvent
from .remote import RemoteStore
from .sinks import TransferError

logger = logging.getLogger(__name__)


def resolve_mode(event: ChangeEvent, override: Optional[int]) -> Optional[int]:
    """Return the mode to apply, or ``None`` when the event's value is not usable.

    The store reports permissions as a decimal integer whose digits are the
    octal mode, so 644 becomes 0o644. A configured override is used as-is.
    """

    if override is not None:
        return override
    try:
        return int(str(event.permissions), 8)
    except ValueError:
        logger.warning(
            "Permissions %s for %s are not octal digits; leaving mode unchanged",
            event.permissions,
            event.file_path,
        )
        return None


def resolve_ownership(event: ChangeEvent, owner: int, group: int) -> Tuple[int, int]:
    uid = owner if owner else event.owner_id
    gid = group if group else event.group_id
    return uid, gid


class LocalMirrorSink:
    """Copies each dispatched file below ``base_path`` and reconciles its metadata."""

    name = "mirror"

    def __init__(self, store: RemoteStore, settings: MirrorConfig):
        if settings.base_path is None:
            raise ValueError("LocalMirrorSink requires a base_path")
        self._store = store
        self._settings = settings
        self._base_path = Path(settings.base_path)

    def destination_for(self, file_path: str) -> Path:
        base = self._base_path.resolve()
        destination = (base / file_path.lstrip("/")).resolve()
        try:
            destination.relative_to(base)
        except ValueError as exc:
            raise TransferError(file_path, "resolve", f"path escapes mirror root {base}") from exc
        if destination == base:
            raise TransferError(file_path, "resolve", "path resolves to the mirror root")
        return destination

    def sync(self, event: ChangeEvent) -> None:
        destination = self.destination_for(event.file_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TransferError(event.file_path, "mkdir", exc) from exc

        try:
            self._store.download(event.file_path, str(destination))
        except Exception as exc:
            raise TransferError(event.file_path, "download", exc) from exc
        logger.info("Mirrored %s to %s", event.file_path, destination)

        self._apply_mode(event, destination)
        self._apply_ownership(event, destination)

    def _apply_mode(self, event: ChangeEvent, destination: Path) -> None:
        mode = resolve_mode(event, self._settings.permissions)
        if mode is None or mode <= 0:
            return
        try:
            os.chmod(destination, mode)
        except OSError as exc:
            logger.warning("Unable to chmod %s to %o: %s", destination, mode, exc)

    def _apply_ownership(self, event: ChangeEvent, destination: Path) -> None:
        uid, gid = resolve_ownership(event, self._settings.owner, self._settings.group)
        if uid <= 0 or gid <= 0:
            return
        try:
            os.chown(destination, uid, gid)
        except OSError as exc:
            logger.warning("Unable to chown %s to %s:%s: %s", destination, uid, gid, exc)
