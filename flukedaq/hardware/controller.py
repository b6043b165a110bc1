"""Scan control and batch reads against a connected DAQ."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np

from ..config import DeviceConfig
from ..constants import IGNORE_TYPE
from ..errors import DeviceError
from .device_manager import DeviceCollaborator, DeviceConnection, create_device
from .tags import ChannelDescriptor, TagRegistry

log = logging.getLogger(__name__)


def to_float64(raw: Any) -> Optional[float]:
    """Return *raw* as a 64-bit float, or None when it is not a 32/64-bit float."""

    if isinstance(raw, np.float32):
        return float(raw)
    if isinstance(raw, float):  # includes numpy.float64
        return raw
    return None


@dataclass(frozen=True, slots=True)
class Reading:
    """Value of one channel at one instant."""

    name: str
    type: str
    raw: Any
    value: Optional[float]

    @classmethod
    def from_raw(cls, descriptor: ChannelDescriptor, raw: Any) -> "Reading":
        return cls(name=descriptor.name, type=descriptor.type, raw=raw, value=to_float64(raw))

    @property
    def forwards_to_sink(self) -> bool:
        return self.type != IGNORE_TYPE


class DAQController:
    """Owns one device connection and the registry describing its channels."""

    def __init__(self, connection: DeviceConnection, registry: TagRegistry) -> None:
        self._connection = connection
        self._registry = registry

    @property
    def registry(self) -> TagRegistry:
        return self._registry

    def start_scanning(self) -> None:
        self._write_control(True)

    def stop_scanning(self) -> None:
        self._write_control(False)

    def _write_control(self, value: bool) -> None:
        control = self._registry.control
        try:
            self._connection.write(control.tag, value)
        except Exception as exc:  # pylint: disable=broad-except
            action = 'start' if value else 'stop'
            raise DeviceError(f"failed to {action} scanning via '{control.tag}': {exc}") from exc

    def names(self) -> List[str]:
        return self._registry.names()

    def read_all(self) -> List[Reading]:
        """Read every measurement channel once, in ascending index order.

        A channel that fails to read yields a reading without a numeric value
        instead of aborting the batch.
        """

        readings: List[Reading] = []
        for descriptor in self._registry.channels():
            try:
                raw = self._connection.read(descriptor.tag)
            except Exception as exc:  # pylint: disable=broad-except
                log.debug("Read of %s (%s) failed: %s", descriptor.name, descriptor.tag, exc)
                raw = None
            readings.append(Reading.from_raw(descriptor, raw))
        return readings

    def close(self) -> None:
        self._connection.close()


def connect_to_daq(config: DeviceConfig, device: Optional[DeviceCollaborator] = None) -> DAQController:
    """Browse the device, connect to every tag and build the configured registry."""

    device = device or create_device(config)
    tags = device.browse()
    registry = TagRegistry.from_config(tags, config.tags)
    connection = device.connect(tags)
    log.info("Connected to DAQ: %d tags browsed, %d configured", len(tags), len(registry))
    return DAQController(connection, registry)
