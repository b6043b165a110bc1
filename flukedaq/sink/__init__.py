"""Time-series sinks for recorded readings."""
from __future__ import annotations

from .influx import InfluxSink, build_point, create_influx_client, open_sink

__all__ = ["InfluxSink", "build_point", "create_influx_client", "open_sink"]
