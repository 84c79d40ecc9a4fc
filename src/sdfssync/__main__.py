"""Command-line entry point for the sync listener."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List

from .cloud import CloudUploadSink, ProvisioningError, create_client, provision_bucket
from .config import ConfigError, SyncConfig, describe, load_config
from .listener import NotificationListener
from .mirror import LocalMirrorSink
from .remote import RemoteClient, connect
from .reporting import EventReporter
from .routing import ActionRouter
from .sinks import Sink

EXIT_CONFIG = 3
EXIT_CONNECTION = 4
EXIT_PROVISIONING = 5


def build_sinks(config: SyncConfig, client: RemoteClient) -> List[Sink]:
    sinks: List[Sink] = []
    if config.gcs.enabled:
        storage_client = create_client(config.gcs)
        bucket = provision_bucket(storage_client, config.gcs)
        sinks.append(CloudUploadSink(client, bucket, config.gcs.temp_dir))
    if config.mirror.enabled:
        sinks.append(LocalMirrorSink(client, config.mirror))
    return sinks


def main() -> None:
    parser = argparse.ArgumentParser(description="Relay SDFS file change notifications to sync sinks")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print a table describing every received event",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    config_path = Path(args.config)
    try:
        app_config = load_config(config_path)
    except ConfigError as exc:
        logging.error("Config Error(%s): %s", config_path, exc)
        raise SystemExit(EXIT_CONFIG) from exc
    logging.debug("Effective configuration: %s", describe(app_config))

    try:
        client = connect(app_config.server)
    except ConfigError as exc:
        logging.error("Config Error(%s): %s", config_path, exc)
        raise SystemExit(EXIT_CONFIG) from exc
    except Exception as exc:
        logging.error("Connection Error(%s): %s", app_config.server.url, exc)
        raise SystemExit(EXIT_CONNECTION) from exc

    try:
        sinks = build_sinks(app_config, client)
    except ProvisioningError as exc:
        logging.error("Bucket Error(%s): %s", app_config.gcs.bucket, exc)
        raise SystemExit(EXIT_PROVISIONING) from exc

    reporter = EventReporter() if args.debug or app_config.listener.debug else None
    router = ActionRouter(app_config.listener.enabled_actions, sinks)
    listener = NotificationListener(
        client,
        router,
        ignore=app_config.listener.ignore,
        queue_size=app_config.listener.queue_size,
        reporter=reporter,
    )
    listener.run()


if __name__ == "__main__":
    main()
