"""Shared constants used across the Fluke DAQ datasource."""
from __future__ import annotations

PLUGIN_NAME = "fluke-plugin"
PLUGIN_VERSION = "1.0.0"
LANIAKEA_VERSION_CONSTRAINT = ">= 0.2.0"

OPC_SERVER_NAME = "Fluke.DAQ.OPC"
OPC_SERVER_HOST = "localhost"

DEFAULT_POLL_INTERVAL_S = 5.0
DEFAULT_WARMUP_S = 1.0  # lets the host attach its frame subscriber

CONTENT_TYPE_JSON = "application/json"

CONTROL_INDEX = 0  # scan start/stop switch, never part of a frame
IGNORE_TYPE = "ignore"
