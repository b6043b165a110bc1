"""InfluxDB 2.x sink for numeric channel readings."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import WriteOptions

from ..config import InfluxConfig
from ..errors import BlankSinkTargetError, InvalidBucketError, InvalidOrganizationError, SinkWriteError

log = logging.getLogger(__name__)

ClientFactory = Callable[[InfluxConfig], Any]


def create_influx_client(config: InfluxConfig) -> InfluxDBClient:
    """Build a client for *config*; TLS verification follows ``verify_ssl``."""

    return InfluxDBClient(url=config.url, token=config.token, org=config.org, verify_ssl=config.verify_ssl)


def build_point(measurement: str, tag_id: str, value: float, timestamp: datetime) -> Point:
    return (
        Point(measurement)
        .tag('id', tag_id)
        .field(measurement, float(value))
        .time(timestamp, WritePrecision.MS)
    )


class InfluxSink:
    """Session-scoped point writer.

    ``open`` resolves the organization and bucket once, creating the bucket
    when it does not exist yet. Points are batched by the client's background
    writer; ``flush`` drains the batches and reports any that failed.
    """

    def __init__(self, config: InfluxConfig, client: Any) -> None:
        self._config = config
        self._client = client
        self._org: Any = None
        self._bucket: Any = None
        self._write_api: Any = None
        self._errors: List[str] = []
        self._errors_lock = threading.Lock()
        self._points = 0

    @property
    def points_written(self) -> int:
        return self._points

    @property
    def is_open(self) -> bool:
        return self._write_api is not None

    def validate(self) -> None:
        if not self._config.org or not self._config.bucket:
            raise BlankSinkTargetError()

    def open(self) -> None:
        self.validate()
        self._org = self._find_org(self._config.org)
        self._bucket = self._find_or_create_bucket(self._org, self._config.bucket)
        self._open_writer()

    def _find_org(self, name: str) -> Any:
        try:
            organizations = self._client.organizations_api().find_organizations(org=name)
        except Exception as exc:  # pylint: disable=broad-except
            raise InvalidOrganizationError(name) from exc
        for org in organizations or []:
            if getattr(org, 'name', None) == name:
                return org
        raise InvalidOrganizationError(name)

    def _find_or_create_bucket(self, org: Any, name: str) -> Any:
        buckets_api = self._client.buckets_api()
        try:
            result = buckets_api.find_buckets(org_id=org.id, name=name)
        except Exception as exc:  # pylint: disable=broad-except
            raise InvalidOrganizationError(org.name) from exc
        for bucket in getattr(result, 'buckets', None) or []:
            if bucket.name == name:
                return bucket
        log.info("Creating %s bucket...", name)
        try:
            return buckets_api.create_bucket(bucket_name=name, org=org)
        except Exception as exc:  # pylint: disable=broad-except
            raise InvalidBucketError(name, str(exc)) from exc

    def _open_writer(self) -> None:
        options = WriteOptions(
            batch_size=self._config.batch_size,
            flush_interval=self._config.flush_interval_ms,
            max_retries=0,
        )
        self._write_api = self._client.write_api(
            write_options=options,
            error_callback=self._on_batch_error,
        )

    def _on_batch_error(self, conf: Any, data: Any, exc: Exception) -> None:
        with self._errors_lock:
            self._errors.append(str(exc))
        log.warning("Influx batch write failed: %s", exc)

    def write(self, measurement: str, tag_id: str, value: float, timestamp: datetime) -> None:
        if self._write_api is None:
            raise SinkWriteError("sink is not open for writing")
        point = build_point(measurement, tag_id, value, timestamp)
        self._write_api.write(bucket=self._config.bucket, org=self._config.org, record=point)
        self._points += 1

    def flush(self) -> None:
        """Block until every accepted point has been sent."""

        if self._write_api is None:
            return
        write_api, self._write_api = self._write_api, None
        # WriteApi.flush() does not drain the batching pipeline; close() does.
        write_api.flush()
        write_api.close()
        with self._errors_lock:
            errors, self._errors = self._errors, []
        if errors:
            raise SinkWriteError(f"{len(errors)} batch(es) failed: {errors[-1]}")

    def close(self) -> None:
        self._client.close()


def open_sink(config: InfluxConfig, client_factory: Optional[ClientFactory] = None) -> InfluxSink:
    """Create and open a sink, closing the client again if resolution fails."""

    client = (client_factory or create_influx_client)(config)
    sink = InfluxSink(config, client)
    try:
        sink.open()
    except Exception:
        sink.close()
        raise
    return sink
