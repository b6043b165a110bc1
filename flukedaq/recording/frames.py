"""Frame assembly and JSON wire encoding."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List

from ..constants import CONTENT_TYPE_JSON
from ..errors import SerializationError
from ..hardware.controller import Reading


@dataclass(frozen=True, slots=True)
class Payload:
    name: str
    value: float


@dataclass(slots=True)
class Frame:
    """Numeric readings of one tick, in channel index order."""

    data: List[Payload] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'data': [{'name': entry.name, 'value': entry.value} for entry in self.data]}


@dataclass(frozen=True, slots=True)
class DeliveryRecord:
    """Envelope delivered to the host for every frame."""

    source: str
    content_type: str
    timestamp_ms: int
    payload: bytes

    def decode(self) -> Dict[str, Any]:
        return json.loads(self.payload)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'type': self.content_type,
            'timestamp': self.timestamp_ms,
            'payload': self.decode(),
        }


def build_frame(readings: Iterable[Reading]) -> Frame:
    """Keep numeric readings only; anything else is dropped silently."""

    return Frame(data=[Payload(name=reading.name, value=reading.value) for reading in readings if reading.value is not None])


def encode_frame(frame: Frame) -> bytes:
    try:
        text = json.dumps(frame.to_dict(), separators=(',', ':'), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"frame could not be encoded: {exc}") from exc
    return text.encode('utf-8')


def to_delivery(frame: Frame, source: str, captured_at: datetime) -> DeliveryRecord:
    return DeliveryRecord(
        source=source,
        content_type=CONTENT_TYPE_JSON,
        timestamp_ms=int(captured_at.timestamp() * 1000),
        payload=encode_frame(frame),
    )
