"""Process-wide record of the classes generated so far."""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Iterator, Mapping


class ClassCache:
    """Qualified class name -> generated class. Entries are never removed.

    ``lock`` is re-entrant; hold it across a check-then-insert so two loaders
    cannot generate the same class twice.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._classes: dict[str, type] = {}

    def get(self, name: str) -> type | None:
        return self._classes.get(name)

    def add(self, name: str, cls: type) -> type:
        """Record ``cls`` unless ``name`` is already taken; return the cached class."""

        with self.lock:
            return self._classes.setdefault(name, cls)

    def snapshot(self) -> Mapping[str, type]:
        return MappingProxyType(dict(self._classes))

    def __contains__(self, name: object) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._classes))


CLASS_CACHE = ClassCache()

__all__ = ["CLASS_CACHE", "ClassCache"]
