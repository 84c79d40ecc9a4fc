"""Interfaces of the remote SDFS client and loading of its factory."""
from __future__ import annotations

import importlib
import logging
import threading
from typing import Any, Callable, Optional, Protocol, cast

from .config import ConfigError, ServerConfig
from .events import NotificationBatch

logger = logging.getLogger(__name__)


class NotificationSource(Protocol):
    """Produces batches of change events in the order the volume emits them."""

    def next_batch(self, cancel: threading.Event) -> Optional[NotificationBatch]:
        """Block until a batch is available; ``None`` marks the end of the stream."""
        ...


class RemoteStore(Protocol):
    """Retrieves file contents from the remote volume."""

    def download(self, remote_path: str, local_path: str) -> None:
        """Copy ``remote_path`` into ``local_path``, raising on failure."""
        ...

    def volume_info(self) -> Any: ...


class RemoteClient(NotificationSource, RemoteStore, Protocol):
    """A connected client that is both a notification source and a file store."""


ClientFactory = Callable[[ServerConfig], RemoteClient]


def load_client_factory(spec: str) -> ClientFactory:
    """Resolve a ``module:callable`` reference to a client factory."""

    module_path, _, attribute = spec.partition(":")
    if not module_path or not attribute:
        raise ConfigError(f"Client factory '{spec}' must look like 'module:callable'")

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Unable to import client module '{module_path}'") from exc

    try:
        factory = getattr(module, attribute)
    except AttributeError as exc:
        raise ConfigError(f"Client module '{module_path}' has no attribute '{attribute}'") from exc

    if not callable(factory):
        raise ConfigError(f"Client factory '{spec}' is not callable")

    return cast(ClientFactory, factory)


def connect(server: ServerConfig) -> RemoteClient:
    """Build a client for ``server`` and check that the volume answers."""

    factory = load_client_factory(server.client)
    logger.info("Connecting to %s", server.url)
    client = factory(server)
    info = client.volume_info()
    logger.debug("Volume info for %s: %s", server.url, info)
    return client
