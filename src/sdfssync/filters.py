"""Path prefix filtering for incoming change events."""
from __future__ import annotations

from typing import Iterable, Optional


def matching_prefix(path: str, prefixes: Iterable[str]) -> Optional[str]:
    """Return the first prefix that ``path`` starts with, in configuration order."""

    for prefix in prefixes:
        if path.startswith(prefix):
            return prefix
    return None


def is_ignored(path: str, prefixes: Iterable[str]) -> bool:
    return matching_prefix(path, prefixes) is not None
