"""Action routing and guarded sink dispatch."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence, Tuple

from .events import ChangeEvent, SyncAction
from .sinks import Sink, TransferError

logger = logging.getLogger(__name__)

# Actions that copy file contents to sinks. DELETE is routed but has no sink behaviour.
COPY_ACTIONS: Tuple[SyncAction, ...] = (SyncAction.DOWNLOAD, SyncAction.UPLOAD, SyncAction.WRITE)


@dataclass
class DispatchResult:
    """Outcome of dispatching one event."""

    invoked: int = 0
    failed: int = 0


class ActionRouter:
    """Maps each action kind to the sinks it is sent to."""

    def __init__(self, enabled_actions: Iterable[SyncAction], sinks: Sequence[Sink]):
        self._enabled = frozenset(enabled_actions)
        self._sinks: Tuple[Sink, ...] = tuple(sinks)
        self._table: Dict[SyncAction, Tuple[Sink, ...]] = {
            action: (self._sinks if action in self._enabled else ()) for action in COPY_ACTIONS
        }
        # Deletions are not propagated to sinks.
        self._table[SyncAction.DELETE] = ()

    def is_enabled(self, action: SyncAction) -> bool:
        return action in self._enabled

    def route(self, event: ChangeEvent) -> Tuple[Sink, ...]:
        return self._table.get(event.action, ())

    def dispatch(self, event: ChangeEvent) -> DispatchResult:
        result = DispatchResult()
        sinks = self.route(event)
        if not sinks:
            if event.action is SyncAction.DELETE and self.is_enabled(event.action):
                logger.debug("Delete of %s has no sink action", event.file_path)
            return result
        for sink in sinks:
            result.invoked += 1
            if not self._safe_invoke(sink, event):
                result.failed += 1
        return result

    def _safe_invoke(self, sink: Sink, event: ChangeEvent) -> bool:
        logger.debug("Dispatching %s (%s) to %s", event.file_path, event.action.value, sink.name)
        try:
            sink.sync(event)
        except TransferError as exc:
            logger.error("Sink %s failed for %s: %s", sink.name, event.file_path, exc)
            return False
        except Exception:
            logger.exception("Sink %s failed for event %s", sink.name, event.file_path)
            return False
        return True
