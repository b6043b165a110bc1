"""Process bootstrap helpers."""
from __future__ import annotations

from .runner import main, run

__all__ = ["main", "run"]
