from __future__ import annotations

import threading
import time
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from flukedaq.config import TagConfig
from flukedaq.hardware import DAQController, TagRegistry

TAGS = ['Fluke.Scan', 'Fluke.Ch1', 'Fluke.Ch2', 'Fluke.Ch3', 'Fluke.Ch4']


class FakeConnection:
    """Records writes and serves reads from a tag -> value mapping."""

    def __init__(self, values: Optional[Dict[str, Any]] = None, *, fail_writes: bool = False) -> None:
        self.values = dict(values or {})
        self.fail_writes = fail_writes
        self.writes: List[tuple[str, bool]] = []
        self.reads = 0
        self.closed = False
        self._lock = threading.Lock()

    def write(self, tag: str, value: bool) -> None:
        with self._lock:
            self.writes.append((tag, value))
        if self.fail_writes:
            raise IOError('write rejected')

    def read(self, tag: str) -> Any:
        self.reads += 1
        value = self.values.get(tag)
        if isinstance(value, Exception):
            raise value
        return value

    def close(self) -> None:
        self.closed = True

    def scan_writes(self, value: bool) -> int:
        with self._lock:
            return sum(1 for tag, written in self.writes if tag == TAGS[0] and written is value)


class FakeWriteApi:
    def __init__(self, error_callback=None) -> None:
        self.records: List[tuple[str, str, Any]] = []
        self.error_callback = error_callback
        self.flushed = False
        self.closed = False

    def write(self, bucket: str, org: str, record: Any) -> None:
        self.records.append((bucket, org, record))

    def flush(self) -> None:
        self.flushed = True

    def close(self) -> None:
        self.closed = True


class FakeInfluxClient:
    """Stand-in for ``InfluxDBClient`` with one organization and its buckets."""

    def __init__(self, orgs=('lab',), buckets=('fluke',), *, fail_create: bool = False) -> None:
        self.orgs = {name: SimpleNamespace(id=f"org-{name}", name=name) for name in orgs}
        self.buckets = [SimpleNamespace(name=name) for name in buckets]
        self.created: List[str] = []
        self.fail_create = fail_create
        self.write_apis: List[FakeWriteApi] = []
        self.closed = False

    def organizations_api(self):
        client = self

        class _Orgs:
            def find_organizations(self, org=None):
                if org not in client.orgs:
                    raise RuntimeError('(404) organization not found')
                return [client.orgs[org]]

        return _Orgs()

    def buckets_api(self):
        client = self

        class _Buckets:
            def find_buckets(self, org_id=None, name=None):
                return SimpleNamespace(buckets=[bucket for bucket in client.buckets if name in (None, bucket.name)])

            def create_bucket(self, bucket_name=None, org=None):
                if client.fail_create:
                    raise RuntimeError('(403) forbidden')
                client.created.append(bucket_name)
                bucket = SimpleNamespace(name=bucket_name)
                client.buckets.append(bucket)
                return bucket

        return _Buckets()

    def write_api(self, write_options=None, error_callback=None):
        api = FakeWriteApi(error_callback)
        self.write_apis.append(api)
        return api

    def close(self) -> None:
        self.closed = True

    def points(self) -> List[Any]:
        return [record for api in self.write_apis for (_, _, record) in api.records]


def wait_for(predicate, timeout=2.0, interval=0.01):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return False


def build_controller(connection: FakeConnection, configured: Dict[int, TagConfig]) -> DAQController:
    return DAQController(connection, TagRegistry.from_config(TAGS, configured))


@pytest.fixture()
def configured_tags() -> Dict[int, TagConfig]:
    return {
        0: TagConfig(tag='Scan', type='ignore'),
        1: TagConfig(tag='A', type='temperature'),
        2: TagConfig(tag='B', type='pressure'),
        3: TagConfig(tag='C', type='voltage'),
    }
