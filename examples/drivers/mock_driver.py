"""In-memory drivers for manual and automated tests."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence

from viewloader.drivers import ViewDriver
from viewloader.records import ViewRecord


class MockHandle:
    """Stand-in for a live connection; counts as open until closed."""

    def __init__(self, backend: MockBackend, dsn: str, username: str | None) -> None:
        self.backend = backend
        self.dsn = dsn
        self.username = username
        self.closed = False

    def run(self, fn: Callable[[Any], Any]) -> Any:
        raise NotImplementedError("MockHandle has no SQL connection")

    def close(self) -> None:
        self.closed = True


class MockBackend:
    """Fake database exposing a fixed set of views."""

    def __init__(self, views: Mapping[str, Sequence[str]] | None = None) -> None:
        self.views: dict[str, tuple[str, ...]] = {name: tuple(columns) for name, columns in (views or {}).items()}
        self.handles: list[MockHandle] = []
        self.error: Exception | None = None

    @property
    def connections(self) -> int:
        return len(self.handles)

    def connect(self, dsn: str, username: str | None) -> MockHandle:
        if self.error is not None:
            raise self.error
        handle = MockHandle(self, dsn, username)
        self.handles.append(handle)
        return handle


class MockViewRecord(ViewRecord):
    """Base class for classes generated by the mock driver."""


class MockDriver(ViewDriver):
    """Driver for ``dbi:Mock:``; pass the backend as ``options={"backend": ...}``."""

    token = "Mock"

    def __init__(self, state) -> None:  # type: ignore[no-untyped-def]
        super().__init__(state)
        self.released = 0

    def base_class(self) -> type[ViewRecord]:
        return MockViewRecord

    def get_views(self) -> list[str]:
        return list(self._backend().views)

    def get_view_cols(self, view: str) -> list[str]:
        return list(self._backend().views.get(view, ()))

    @classmethod
    def connect(
        cls,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> MockHandle:
        backend = options.get("backend")
        if backend is None:
            raise RuntimeError("no mock backend configured")
        return backend.connect(dsn, username)

    def release(self) -> None:
        self.released += 1

    def _backend(self) -> MockBackend:
        return self.handle().backend  # type: ignore[attr-defined]


MockViewRecord.__driver__ = MockDriver


class PartialDriver(ViewDriver):
    """Driver that only knows how to connect."""

    token = "Partial"

    @classmethod
    def connect(
        cls,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> MockHandle:
        return MockBackend().connect(dsn, username)


class NotADriver:
    """Registered by mistake; does not derive from ViewDriver."""

    token = "Broken"
