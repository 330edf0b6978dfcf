from __future__ import annotations

from .formatter import build_snapshot_panel, format_snapshot_table

__all__ = [
    "build_snapshot_panel",
    "format_snapshot_table",
]
