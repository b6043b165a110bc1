"""Unbuffered hand-off channel between a sampling loop and its consumer."""
from __future__ import annotations

import threading
import time
from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar('T')


class ChannelClosed(Exception):
    """Raised on receive from, or send to, a closed channel."""


class FrameChannel(Generic[T]):
    """Single-producer rendezvous channel.

    ``send`` returns only after a consumer has taken the item, so a slow
    consumer slows the producer down instead of items piling up in memory.
    """

    def __init__(self, poll_interval_s: float = 0.05) -> None:
        self._cond = threading.Condition()
        self._item: Optional[T] = None
        self._pending = False
        self._closed = False
        self._poll_interval_s = max(poll_interval_s, 0.001)

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def send(self, item: T, cancel: Optional[threading.Event] = None) -> bool:
        """Offer *item* and wait for a consumer to take it.

        Returns False if *cancel* was set before the item was taken; the item
        is then withdrawn.
        """

        with self._cond:
            if self._closed:
                raise ChannelClosed('send on closed channel')
            self._item = item
            self._pending = True
            self._cond.notify_all()
            while self._pending:
                if cancel is not None and cancel.is_set():
                    self._pending = False
                    self._item = None
                    return False
                self._cond.wait(self._poll_interval_s)
            return True

    def receive(self, timeout: Optional[float] = None) -> T:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._pending:
                if self._closed:
                    raise ChannelClosed('channel closed')
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError('no item received before timeout')
                self._cond.wait(remaining)
            item = self._item
            self._item = None
            self._pending = False
            self._cond.notify_all()
            return item  # type: ignore[return-value]

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class FrameStream(Generic[T]):
    """Receive-only view handed to callers of ``start_record``."""

    def __init__(self, channel: FrameChannel[T]) -> None:
        self._channel = channel

    @property
    def closed(self) -> bool:
        return self._channel.closed

    def get(self, timeout: Optional[float] = None) -> T:
        return self._channel.receive(timeout)

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self._channel.receive()
            except ChannelClosed:
                return
