"""Recording sessions and frame delivery."""
from __future__ import annotations

from .channel import ChannelClosed, FrameChannel, FrameStream
from .engine import FlukeDatasource, RecordingStats, SessionState
from .frames import DeliveryRecord, Frame, Payload, build_frame, encode_frame, to_delivery

__all__ = [
    "ChannelClosed",
    "DeliveryRecord",
    "FlukeDatasource",
    "Frame",
    "FrameChannel",
    "FrameStream",
    "Payload",
    "RecordingStats",
    "SessionState",
    "build_frame",
    "encode_frame",
    "to_delivery",
]
