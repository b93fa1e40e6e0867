"""Shared utility helpers."""

from protoscan.utils.paths import write_json_atomically
from protoscan.utils.time_utils import now_utc

__all__ = [
    "write_json_atomically",
    "now_utc",
]
