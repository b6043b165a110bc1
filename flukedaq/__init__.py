"""Fluke DAQ datasource: polls DAQ channels into JSON frames and InfluxDB."""
from __future__ import annotations

from .config import AppConfig, load_config
from .recording import FlukeDatasource

__all__ = ["AppConfig", "FlukeDatasource", "load_config"]
