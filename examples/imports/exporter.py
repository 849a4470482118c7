"""Module exporting helpers straight into the target class."""

from __future__ import annotations

EXPORTED: list[type] = []


def export(target: type) -> None:
    target.exported_by = __name__
    EXPORTED.append(target)
