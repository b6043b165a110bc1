"""Hardware abstraction helpers."""
from __future__ import annotations

from .controller import DAQController, Reading, connect_to_daq, to_float64
from .device_manager import (
    DeviceCollaborator,
    DeviceConnection,
    OpcDevice,
    SimulatedDevice,
    create_device,
    describe_tags,
)
from .tags import ChannelDescriptor, TagRegistry, build_tag_map

__all__ = [
    "ChannelDescriptor",
    "DAQController",
    "DeviceCollaborator",
    "DeviceConnection",
    "OpcDevice",
    "Reading",
    "SimulatedDevice",
    "TagRegistry",
    "build_tag_map",
    "connect_to_daq",
    "create_device",
    "describe_tags",
    "to_float64",
]
