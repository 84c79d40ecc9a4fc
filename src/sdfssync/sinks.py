"""Sink protocol and the per-event failure type shared by sink adapters."""
from __future__ import annotations

from typing import Protocol

from .events import ChangeEvent


class TransferError(Exception):
    """Raised when a sink cannot copy an event's file to its destination."""

    def __init__(self, file_path: str, stage: str, reason: object):
        super().__init__(f"{stage} failed for {file_path}: {reason}")
        self.file_path = file_path
        self.stage = stage


class Sink(Protocol):
    """A destination that receives a copy of every dispatched file."""

    name: str

    def sync(self, event: ChangeEvent) -> None: ...
