"""Configuration management for the Fluke DAQ datasource."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_WARMUP_S,
    IGNORE_TYPE,
    LANIAKEA_VERSION_CONSTRAINT,
    OPC_SERVER_HOST,
    OPC_SERVER_NAME,
    PLUGIN_NAME,
    PLUGIN_VERSION,
)

DEVICE_TRANSPORTS = {'opc', 'sim'}

# Flat keys of the legacy single-level ``fluke.yaml`` layout.
_LEGACY_INFLUX_KEYS = {
    'Influx': 'enabled',
    'InfluxURL': 'url',
    'InfluxAPIToken': 'token',
    'InfluxOrgName': 'org',
    'InfluxBucketName': 'bucket',
}


@dataclass(slots=True)
class TagConfig:
    """Display name and semantic type for one configured channel."""

    tag: str
    type: str = IGNORE_TYPE

    def __post_init__(self) -> None:
        self.tag = str(self.tag).strip()
        if not self.tag:
            raise ValueError('tag name cannot be empty')
        self.type = str(self.type or IGNORE_TYPE).strip() or IGNORE_TYPE

    @classmethod
    def from_value(cls, value: Any) -> "TagConfig":
        if isinstance(value, TagConfig):
            return value
        if isinstance(value, str):
            return cls(tag=value)
        if isinstance(value, dict):
            tag = value.get('tag', value.get('Tag'))
            kind = value.get('type', value.get('Type'))
            if tag is None:
                raise ValueError(f"tag entry is missing a name: {value!r}")
            return cls(tag=tag, type=kind or IGNORE_TYPE)
        raise TypeError(f"Unsupported tag payload: {type(value).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {'tag': self.tag, 'type': self.type}


def _coerce_tags(value: Any) -> Dict[int, TagConfig]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"Expected mapping for device tags, got {type(value).__name__}")
    tags: Dict[int, TagConfig] = {}
    for key, entry in value.items():
        try:
            index = int(key)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"tag index must be an integer, got {key!r}") from exc
        tags[index] = TagConfig.from_value(entry)
    return tags


@dataclass(slots=True)
class DeviceConfig:
    """Where to find the DAQ and how its channels map to named tags."""

    transport: str = 'opc'
    server_name: str = OPC_SERVER_NAME
    server_host: str = OPC_SERVER_HOST
    tags: Dict[int, TagConfig] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.transport = (self.transport or 'opc').lower()
        if self.transport not in DEVICE_TRANSPORTS:
            allowed = ", ".join(sorted(DEVICE_TRANSPORTS))
            raise ValueError(f"transport must be one of {allowed}")
        self.tags = _coerce_tags(self.tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transport': self.transport,
            'server_name': self.server_name,
            'server_host': self.server_host,
            'tags': {index: tag.to_dict() for index, tag in sorted(self.tags.items())},
        }


@dataclass(slots=True)
class RecordingConfig:
    """Sampling cadence and frame identity for recording sessions."""

    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    warmup_s: float = DEFAULT_WARMUP_S
    source: str = PLUGIN_NAME

    def __post_init__(self) -> None:
        try:
            interval = float(self.poll_interval_s)
        except (TypeError, ValueError):
            interval = DEFAULT_POLL_INTERVAL_S
        if interval <= 0:
            raise ValueError('poll_interval_s must be greater than 0')
        self.poll_interval_s = interval
        try:
            warmup = float(self.warmup_s)
        except (TypeError, ValueError):
            warmup = DEFAULT_WARMUP_S
        self.warmup_s = max(warmup, 0.0)
        self.source = (self.source or PLUGIN_NAME).strip() or PLUGIN_NAME


@dataclass(slots=True)
class InfluxConfig:
    """Optional InfluxDB 2.x sink settings."""

    enabled: bool = False
    url: str = ''
    token: str = ''
    org: str = ''
    bucket: str = ''
    verify_ssl: bool = False
    batch_size: int = 1000
    flush_interval_ms: int = 1000

    def __post_init__(self) -> None:
        self.url = (self.url or '').strip()
        self.token = (self.token or '').strip()
        self.org = (self.org or '').strip()
        self.bucket = (self.bucket or '').strip()
        if self.batch_size < 1:
            self.batch_size = 1
        if self.flush_interval_ms < 0:
            self.flush_interval_ms = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'url': self.url,
            'token': '***' if self.token else '',
            'org': self.org,
            'bucket': self.bucket,
            'verify_ssl': self.verify_ssl,
            'batch_size': self.batch_size,
            'flush_interval_ms': self.flush_interval_ms,
        }


@dataclass(slots=True)
class PluginConfig:
    """Identity reported to the host process."""

    name: str = PLUGIN_NAME
    version: str = PLUGIN_VERSION
    version_constraint: str = LANIAKEA_VERSION_CONSTRAINT


@dataclass(slots=True)
class AppConfig:
    """Top-level application configuration bundle."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    influx: InfluxConfig = field(default_factory=InfluxConfig)
    plugin: PluginConfig = field(default_factory=PluginConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        """Create a configuration instance from a nested dictionary.

        Flat keys from the legacy ``fluke.yaml`` layout (``Influx``,
        ``InfluxURL``, ``FlukeTags`` ...) are folded into their sections.
        """

        payload = _fold_legacy_keys(dict(payload or {}))

        def _section(name: str, factory: Any) -> Any:
            data = payload.get(name, {})
            if data is None:
                data = {}
            if isinstance(data, dict):
                return factory(**data)
            raise TypeError(f"Expected mapping for section '{name}', got {type(data).__name__}")

        return cls(
            device=_section('device', DeviceConfig),
            recording=_section('recording', RecordingConfig),
            influx=_section('influx', InfluxConfig),
            plugin=_section('plugin', PluginConfig),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a serialisable representation of the configuration."""

        def _asdict(obj: Any) -> Dict[str, Any]:
            return {field: getattr(obj, field) for field in obj.__dataclass_fields__}  # type: ignore[attr-defined]

        return {
            'device': self.device.to_dict(),
            'recording': _asdict(self.recording),
            'influx': self.influx.to_dict(),
            'plugin': _asdict(self.plugin),
        }


def _fold_legacy_keys(payload: Dict[str, Any]) -> Dict[str, Any]:
    influx = payload.get('influx')
    legacy_influx = {
        target: payload.pop(key)
        for key, target in _LEGACY_INFLUX_KEYS.items()
        if key in payload
    }
    if legacy_influx:
        merged = dict(influx) if isinstance(influx, dict) else {}
        for key, value in legacy_influx.items():
            merged.setdefault(key, value)
        payload['influx'] = merged
    if 'FlukeTags' in payload:
        legacy_tags = payload.pop('FlukeTags')
        device = payload.get('device')
        merged_device = dict(device) if isinstance(device, dict) else {}
        merged_device.setdefault('tags', legacy_tags)
        payload['device'] = merged_device
    return payload


def load_config(path: Optional[Path]) -> AppConfig:
    """Load configuration from *path* if provided, otherwise return defaults."""

    if path is None:
        return AppConfig()
    resolved = path.expanduser()
    if not resolved.exists():
        return AppConfig()
    payload: Dict[str, Any]
    suffix = resolved.suffix.lower()
    if suffix in {".json", ".jsn"}:
        payload = _load_json(resolved)
    elif suffix in {".toml", ".tml"}:
        payload = _load_toml(resolved)
    elif suffix in {".yaml", ".yml"}:
        payload = _load_yaml(resolved)
    else:
        raise ValueError(f"Unsupported configuration format: {resolved.suffix}")
    return AppConfig.from_dict(payload)


def _load_json(path: Path) -> Dict[str, Any]:
    import json

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _load_toml(path: Path) -> Dict[str, Any]:
    import tomllib

    with path.open("rb") as handle:
        return tomllib.load(handle)


def _load_yaml(path: Path) -> Dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}
