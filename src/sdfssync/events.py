"""Event models shared across listener components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class SyncAction(str, Enum):
    """Types of file operations reported by the remote store."""

    DOWNLOAD = "download"
    UPLOAD = "upload"
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single file change reported by the remote store plus its metadata snapshot."""

    file_path: str
    action: SyncAction
    size: int = 0
    access_time: int = 0  # milliseconds since the epoch
    create_time: int = 0
    modify_time: int = 0
    permissions: int = 0  # decimal digits read as octal, e.g. 644
    owner_id: int = 0
    group_id: int = 0
    is_symlink: bool = False
    symlink_target: Optional[str] = None
    file_name: Optional[str] = None
    hidden: bool = False
    executable: bool = False
    readable: bool = False
    writable: bool = False
    file_guid: Optional[str] = None
    map_guid: Optional[str] = None
    hash_code: Optional[int] = None
    file_type: int = 0  # 0 is a regular file


@dataclass(frozen=True)
class NotificationBatch:
    """An ordered, non-empty group of events that share one action."""

    action: SyncAction
    events: Tuple[ChangeEvent, ...]

    def __post_init__(self) -> None:
        if not self.events:
            raise ValueError("NotificationBatch requires at least one event")
        for event in self.events:
            if event.action != self.action:
                raise ValueError(
                    f"Event {event.file_path} has action {event.action.value}, "
                    f"expected {self.action.value}"
                )

    def __iter__(self):
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)
