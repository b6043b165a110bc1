from __future__ import annotations

import json
import threading
import time
from datetime import datetime, timezone

import numpy as np
import pytest

from flukedaq.errors import SerializationError
from flukedaq.hardware import ChannelDescriptor, Reading
from flukedaq.recording import ChannelClosed, FrameChannel, FrameStream, build_frame, encode_frame, to_delivery


def _reading(name: str, raw) -> Reading:
    return Reading.from_raw(ChannelDescriptor(index=1, name=name, tag=f"tag.{name}", type='temperature'), raw)


def test_frame_keeps_numeric_readings_and_drops_the_rest() -> None:
    readings = [_reading('A', np.float32(1.5)), _reading('B', 2.25), _reading('C', 'unreadable')]

    payload = encode_frame(build_frame(readings))

    assert payload == b'{"data":[{"name":"A","value":1.5},{"name":"B","value":2.25}]}'


def test_empty_frame_still_encodes() -> None:
    assert json.loads(encode_frame(build_frame([_reading('A', None)]))) == {'data': []}


def test_nan_reading_cannot_be_serialised() -> None:
    with pytest.raises(SerializationError):
        encode_frame(build_frame([_reading('A', float('nan'))]))


def test_delivery_record_wraps_payload() -> None:
    captured_at = datetime(2025, 3, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
    record = to_delivery(build_frame([_reading('A', 3.0)]), 'fluke-plugin', captured_at)

    assert record.source == 'fluke-plugin'
    assert record.content_type == 'application/json'
    assert record.timestamp_ms == 1740830400250
    assert record.decode() == {'data': [{'name': 'A', 'value': 3.0}]}
    assert record.to_dict()['timestamp'] == record.timestamp_ms


def test_channel_send_blocks_until_item_is_taken() -> None:
    channel: FrameChannel[int] = FrameChannel(poll_interval_s=0.01)
    delivered = threading.Event()

    def _produce() -> None:
        channel.send(1)
        delivered.set()

    producer = threading.Thread(target=_produce, daemon=True)
    producer.start()
    time.sleep(0.1)
    assert not delivered.is_set()

    assert channel.receive(timeout=1.0) == 1
    assert delivered.wait(timeout=1.0)
    producer.join(timeout=1.0)


def test_channel_send_is_withdrawn_on_cancel() -> None:
    channel: FrameChannel[int] = FrameChannel(poll_interval_s=0.01)
    cancel = threading.Event()
    cancel.set()

    assert channel.send(5, cancel=cancel) is False
    with pytest.raises(TimeoutError):
        channel.receive(timeout=0.05)


def test_closed_channel_ends_stream_iteration() -> None:
    channel: FrameChannel[int] = FrameChannel(poll_interval_s=0.01)
    stream = FrameStream(channel)
    received = []

    def _consume() -> None:
        received.extend(stream)

    consumer = threading.Thread(target=_consume, daemon=True)
    consumer.start()
    for value in (1, 2, 3):
        assert channel.send(value)
    channel.close()
    consumer.join(timeout=1.0)

    assert received == [1, 2, 3]
    assert stream.closed
    with pytest.raises(ChannelClosed):
        channel.send(4)
    with pytest.raises(ChannelClosed):
        stream.get(timeout=0.1)
