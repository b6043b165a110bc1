"""Device collaborators exposing a channel-oriented read/write API."""
from __future__ import annotations

import math
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import numpy as np

from ..config import DeviceConfig

try:
    import OpenOPC  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    OpenOPC = None


class DeviceConnection(Protocol):
    """Live session with the acquisition device."""

    def write(self, tag: str, value: bool) -> None:  # pragma: no cover - protocol signature
        ...

    def read(self, tag: str) -> Any:  # pragma: no cover - protocol signature
        ...

    def close(self) -> None:  # pragma: no cover - protocol signature
        ...


class DeviceCollaborator(Protocol):
    """Discovers channel identifiers and opens connections to them."""

    def browse(self) -> List[str]:  # pragma: no cover - protocol signature
        ...

    def connect(self, tags: Sequence[str]) -> DeviceConnection:  # pragma: no cover - protocol signature
        ...


class OpcConnection:
    """Read/write wrapper around a connected OpenOPC client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def write(self, tag: str, value: bool) -> None:
        status = self._client.write((tag, value))
        if isinstance(status, str) and status.lower() != 'success':
            raise RuntimeError(f"OPC write to '{tag}' failed: {status}")

    def read(self, tag: str) -> Any:
        result = self._client.read(tag)
        if isinstance(result, tuple):
            value, quality = result[0], result[1] if len(result) > 1 else None
            if quality is not None and str(quality).lower() != 'good':
                return None
            return value
        return result

    def close(self) -> None:
        self._client.close()


class OpcDevice:
    """OPC DA collaborator for the Fluke DAQ server, backed by ``OpenOPC``."""

    def __init__(
        self,
        config: DeviceConfig,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        factory = client_factory
        if factory is None:
            if OpenOPC is None:
                raise RuntimeError(
                    "OPC transport requires the 'OpenOPC' package. Install it or supply a custom client factory."
                )
            factory = OpenOPC.client
        self._client_factory = factory
        self._server_name = config.server_name
        self._server_host = config.server_host
        self._client: Any = None

    def _ensure_client(self) -> Any:
        if self._client is None:
            client = self._client_factory()
            client.connect(self._server_name, self._server_host)
            self._client = client
        return self._client

    def browse(self) -> List[str]:
        client = self._ensure_client()
        return [str(item) for item in client.list('*', recursive=True)]

    def connect(self, tags: Sequence[str]) -> OpcConnection:
        return OpcConnection(self._ensure_client())


class SimulatedConnection:
    """In-memory connection producing smooth synthetic readings."""

    def __init__(self, device: "SimulatedDevice", tags: Sequence[str]) -> None:
        self._device = device
        self._tags = list(tags)
        self.closed = False

    def write(self, tag: str, value: bool) -> None:
        self._device.record_write(tag, value)

    def read(self, tag: str) -> Any:
        return self._device.sample(tag)

    def close(self) -> None:
        self.closed = True


class SimulatedDevice:
    """Bench-harness stand-in for the Fluke DAQ OPC server.

    Index 0 is the scan switch. Odd channels report ``numpy.float32`` values and
    even channels plain floats, mirroring the mixed widths real servers return.
    """

    def __init__(self, channel_count: int = 8, unreadable: Sequence[str] = ()) -> None:
        if channel_count < 1:
            raise ValueError('channel_count must be at least 1')
        self._tags = ['Scan'] + [f"Channel{index:03d}" for index in range(1, channel_count)]
        self._unreadable = set(unreadable)
        self._lock = threading.Lock()
        self._started = time.monotonic()
        self.scanning = False
        self.writes: List[tuple[str, bool]] = []

    def browse(self) -> List[str]:
        return list(self._tags)

    def connect(self, tags: Sequence[str]) -> SimulatedConnection:
        return SimulatedConnection(self, tags)

    def record_write(self, tag: str, value: bool) -> None:
        if tag not in self._tags:
            raise KeyError(f"unknown tag '{tag}'")
        with self._lock:
            self.writes.append((tag, bool(value)))
            if tag == self._tags[0]:
                self.scanning = bool(value)

    def sample(self, tag: str) -> Any:
        if tag in self._unreadable:
            return 'unreadable'
        try:
            index = self._tags.index(tag)
        except ValueError as exc:
            raise KeyError(f"unknown tag '{tag}'") from exc
        if index == 0:
            return self.scanning
        elapsed = time.monotonic() - self._started
        value = 20.0 + index + math.sin(elapsed / 10.0 + index)
        if index % 2:
            return np.float32(value)
        return float(value)


def create_device(config: DeviceConfig, **options: Any) -> DeviceCollaborator:
    """Create a device collaborator based on *config.transport*."""

    transport = (config.transport or 'opc').lower()
    if transport == 'opc':
        return OpcDevice(config, client_factory=options.get('client_factory'))
    if transport == 'sim':
        channel_count = options.get('channel_count')
        if channel_count is None:
            channel_count = max(config.tags, default=0) + 1
        return SimulatedDevice(channel_count=max(int(channel_count), 1))
    raise ValueError(f"Unsupported transport '{config.transport}'")


def describe_tags(device: DeviceCollaborator) -> Dict[int, str]:
    """Return the browsed tag list keyed by position, for building configs."""

    return {index: tag for index, tag in enumerate(device.browse())}
