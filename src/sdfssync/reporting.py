"""Human readable dumps of change events for debugging."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .events import ChangeEvent


def _format_millis(value: int) -> str:
    try:
        return str(datetime.fromtimestamp(value / 1000))
    except (ValueError, OverflowError, OSError):
        return str(value)


def event_rows(event: ChangeEvent) -> List[Tuple[str, str]]:
    rows: List[Tuple[str, str]] = [
        ("File Name", event.file_name or ""),
        ("Size", str(event.size)),
    ]
    if event.file_type == 0:
        rows.extend(
            [
                ("File GUID", event.file_guid or ""),
                ("Map GUID", event.map_guid or ""),
            ]
        )
    rows.extend(
        [
            ("File Path", event.file_path),
            ("Access Time", _format_millis(event.access_time)),
            ("Create Time", _format_millis(event.create_time)),
            ("Modified Time", _format_millis(event.modify_time)),
            ("Execute", str(event.executable)),
            ("Read", str(event.readable)),
            ("Write", str(event.writable)),
            ("Hidden", str(event.hidden)),
            ("Hash Code", "" if event.hash_code is None else str(event.hash_code)),
            ("Unix Permissions", str(event.permissions)),
            ("Group ID", str(event.group_id)),
            ("User ID", str(event.owner_id)),
            ("Symlink", str(event.is_symlink)),
            ("Symlink Path", event.symlink_target or ""),
            ("File Type", str(event.file_type)),
            ("Event Type", event.action.value),
        ]
    )
    return rows


class EventReporter:
    """Renders each event as a two column table."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    def report(self, event: ChangeEvent) -> None:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Field", justify="left")
        table.add_column(event.file_name or event.file_path, justify="left")
        for name, value in event_rows(event):
            table.add_row(name, value)
        self._console.print(table)
