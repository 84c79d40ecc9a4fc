"""Configuration loading utilities for the sync listener."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import yaml # type: ignore

from .events import SyncAction


logger = logging.getLogger(__name__)

CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass(frozen=True)
class ServerConfig:
    """Connection details for the remote SDFS volume."""

    url: str
    client: str
    password: str = ""
    disable_trust: bool = False


@dataclass(frozen=True)
class ListenerConfig:
    """Which actions are relayed and which paths are skipped."""

    download: bool = False
    upload: bool = False
    write: bool = False
    delete: bool = False
    ignore: Tuple[str, ...] = ()
    queue_size: int = 16
    debug: bool = False

    @property
    def enabled_actions(self) -> FrozenSet[SyncAction]:
        flags = {
            SyncAction.DOWNLOAD: self.download,
            SyncAction.UPLOAD: self.upload,
            SyncAction.WRITE: self.write,
            SyncAction.DELETE: self.delete,
        }
        return frozenset(action for action, enabled in flags.items() if enabled)


@dataclass(frozen=True)
class GCSConfig:
    """Cloud Storage sink settings."""

    enabled: bool = False
    bucket: str = ""
    project_id: str = ""
    credentials: Optional[str] = None
    region: str = "US"
    temp_dir: Path = Path("/tmp")


@dataclass(frozen=True)
class MirrorConfig:
    """Local mirror sink settings. Zero or ``None`` overrides mean "use the event's value"."""

    enabled: bool = False
    base_path: Optional[Path] = None
    owner: int = 0
    group: int = 0
    permissions: Optional[int] = None


@dataclass(frozen=True)
class SyncConfig:
    """Top-level configuration structure."""

    server: ServerConfig
    listener: ListenerConfig = field(default_factory=ListenerConfig)
    gcs: GCSConfig = field(default_factory=GCSConfig)
    mirror: MirrorConfig = field(default_factory=MirrorConfig)


def load_config(path: Path, *, environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    if path.is_dir():
        raise ConfigError(f"'{path}' is a directory, not a normal file")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:  # pragma: no cover - logging helper
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    env = os.environ if environ is None else environ

    server_cfg = _parse_server_config(data.get("server"))
    listener_cfg = _parse_listener_config(data.get("listener"))
    gcs_cfg = _parse_gcs_config(data.get("gcs"), config_path=path, environ=env)
    mirror_cfg = _parse_mirror_config(data.get("mirror"), config_path=path)

    logger.info(
        "Loaded configuration for %s (actions=%s, gcs=%s, mirror=%s)",
        server_cfg.url,
        ",".join(sorted(action.value for action in listener_cfg.enabled_actions)) or "<none>",
        gcs_cfg.enabled,
        mirror_cfg.enabled,
    )
    return SyncConfig(server=server_cfg, listener=listener_cfg, gcs=gcs_cfg, mirror=mirror_cfg)


def _parse_server_config(raw: Any) -> ServerConfig:
    if not isinstance(raw, dict):
        raise ConfigError("'server' section must be a mapping")

    url = raw.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigError("server.url must be a non-empty string")
    url = url.lower()
    if not url.startswith("sdfs"):
        raise ConfigError(f"unsupported server type {url}, only supports sdfs:// or sdfss://")

    client = raw.get("client")
    if not isinstance(client, str) or ":" not in client:
        raise ConfigError("server.client must be a 'module:callable' string")

    password = raw.get("password", "")
    if password is None:
        password = ""
    if not isinstance(password, str):
        raise ConfigError("server.password must be a string")

    return ServerConfig(
        url=url,
        client=client,
        password=password,
        disable_trust=_ensure_bool(raw.get("disable_trust", False), "server.disable_trust"),
    )


def _parse_listener_config(raw: Any) -> ListenerConfig:
    if raw is None:
        return ListenerConfig()
    if not isinstance(raw, dict):
        raise ConfigError("'listener' section must be a mapping")

    queue_size = raw.get("queue_size", 16)
    if not isinstance(queue_size, int) or isinstance(queue_size, bool) or queue_size <= 0:
        raise ConfigError("listener.queue_size must be a positive integer")

    return ListenerConfig(
        download=_ensure_bool(raw.get("download", False), "listener.download"),
        upload=_ensure_bool(raw.get("upload", False), "listener.upload"),
        write=_ensure_bool(raw.get("write", False), "listener.write"),
        delete=_ensure_bool(raw.get("delete", False), "listener.delete"),
        ignore=tuple(_ensure_str_list(raw.get("ignore", []), "listener.ignore")),
        queue_size=queue_size,
        debug=_ensure_bool(raw.get("debug", False), "listener.debug"),
    )


def _parse_gcs_config(raw: Any, *, config_path: Path, environ: Mapping[str, str]) -> GCSConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'gcs' section must be a mapping")

    enabled = _ensure_bool(raw.get("enabled", False), "gcs.enabled")

    credentials = raw.get("credentials") or environ.get(CREDENTIALS_ENV) or None
    if credentials is not None and not isinstance(credentials, str):
        raise ConfigError("gcs.credentials must be a string path")

    bucket = _ensure_str(raw.get("bucket", ""), "gcs.bucket")
    project_id = _ensure_str(raw.get("projectid", ""), "gcs.projectid")
    region = _ensure_str(raw.get("region", "US"), "gcs.region") or "US"
    temp_dir = _resolve_path(
        _ensure_str(raw.get("tempdir", "/tmp"), "gcs.tempdir") or "/tmp",
        config_path=config_path,
    )

    if enabled and not bucket:
        raise ConfigError("gcs.bucket is required when gcs.enabled is true")

    return GCSConfig(
        enabled=enabled,
        bucket=bucket,
        project_id=project_id,
        credentials=credentials,
        region=region,
        temp_dir=temp_dir,
    )


def _parse_mirror_config(raw: Any, *, config_path: Path) -> MirrorConfig:
    if raw is None:
        return MirrorConfig()
    if not isinstance(raw, dict):
        raise ConfigError("'mirror' section must be a mapping")

    enabled = _ensure_bool(raw.get("enabled", False), "mirror.enabled")

    base_path: Optional[Path] = None
    base_path_raw = raw.get("base_path")
    if base_path_raw is not None:
        base_path = _resolve_path(_ensure_str(base_path_raw, "mirror.base_path"), config_path=config_path)
    if enabled and base_path is None:
        raise ConfigError("mirror.base_path is required when mirror.enabled is true")

    return MirrorConfig(
        enabled=enabled,
        base_path=base_path,
        owner=_ensure_id(raw.get("owner", 0), "mirror.owner"),
        group=_ensure_id(raw.get("group", 0), "mirror.group"),
        permissions=_parse_mode_field(raw.get("permissions"), field_name="mirror.permissions"),
    )


def _parse_mode_field(value: Any, *, field_name: str) -> Optional[int]:
    """Accept an octal string ("0644") or an int (YAML already reads 0644 as octal)."""

    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an octal string or integer")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        try:
            mode = int(value.strip(), 8)
        except ValueError as exc:
            raise ConfigError(f"{field_name} must be an octal string such as '0644'") from exc
    else:
        raise ConfigError(f"{field_name} must be an octal string or integer")
    if not 0 < mode <= 0o7777:
        raise ConfigError(f"{field_name} must be between 1 and 07777")
    return mode


def _resolve_path(value: str, *, config_path: Path) -> Path:
    resolved = Path(value)
    if not resolved.is_absolute():
        resolved = (config_path.parent / resolved).resolve()
    return resolved


def _ensure_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a boolean")
    return value


def _ensure_str(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{field_name} must be a string")
    return value


def _ensure_id(value: Any, field_name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{field_name} must be a non-negative integer")
    return value


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items


def describe(config: SyncConfig) -> Dict[str, Any]:
    """Flatten the configuration for logging, with the password masked."""

    return {
        "server.url": config.server.url,
        "server.password": "***" if config.server.password else "",
        "listener.actions": sorted(action.value for action in config.listener.enabled_actions),
        "listener.ignore": list(config.listener.ignore),
        "gcs.enabled": config.gcs.enabled,
        "gcs.bucket": config.gcs.bucket,
        "mirror.enabled": config.mirror.enabled,
        "mirror.base_path": str(config.mirror.base_path) if config.mirror.base_path else None,
    }
