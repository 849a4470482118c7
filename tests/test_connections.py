"""Tests for database handles and the connection state."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import pytest
from sqlalchemy import create_engine, text

from viewloader.connections import (
    AsyncEngineHandle,
    ConnectionState,
    DatabaseHandle,
    EngineHandle,
    HandleClosedError,
)
from viewloader.errors import ConnectionFailed, NoDsn, NoHandlerLoaded


class _Handle:
    def __init__(self) -> None:
        self.closed = False

    def run(self, fn: Callable[[Any], Any]) -> Any:
        return fn(None)

    def close(self) -> None:
        self.closed = True


class _Connector:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None, str | None, dict[str, Any]]] = []
        self.handles: list[_Handle] = []

    def __call__(
        self,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> _Handle:
        self.calls.append((dsn, username, password, dict(options)))
        handle = _Handle()
        self.handles.append(handle)
        return handle


def test_get_handle_connects_once_and_caches() -> None:
    connector = _Connector()
    state = ConnectionState()
    state.username = "me"
    state.password = "secret"
    state.options = {"timeout": 1}
    state.bind("dbi:Mock:", connector)

    first = state.get_handle()
    second = state.get_handle()

    assert first is second
    assert connector.calls == [("dbi:Mock:", "me", "secret", {"timeout": 1})]
    assert state.connection_count == 1
    assert isinstance(first, DatabaseHandle)


def test_options_are_copied_on_set() -> None:
    options = {"timeout": 1}
    state = ConnectionState()

    state.options = options
    options["timeout"] = 2

    assert state.options == {"timeout": 1}


def test_get_handle_requires_a_bound_connector() -> None:
    with pytest.raises(NoHandlerLoaded):
        ConnectionState().get_handle()


def test_get_handle_requires_a_dsn() -> None:
    state = ConnectionState()
    state.bind("", _Connector())

    with pytest.raises(NoDsn):
        state.get_handle()


def test_backend_errors_become_connection_failed() -> None:
    def _broken(*_: object) -> DatabaseHandle:
        raise RuntimeError("password authentication failed")

    state = ConnectionState()
    state.bind("dbi:Mock:", _broken)

    with pytest.raises(ConnectionFailed) as excinfo:
        state.get_handle()

    assert "password authentication failed" in str(excinfo.value)
    assert isinstance(excinfo.value.backend_error, RuntimeError)
    assert state.handle is None


def test_clear_handle_releases_then_closes_and_is_idempotent() -> None:
    events: list[str] = []
    connector = _Connector()
    state = ConnectionState()
    state.bind("dbi:Mock:", connector, lambda: events.append("release"))
    handle = state.get_handle()

    state.clear_handle()
    state.clear_handle()

    assert handle.closed is True
    assert events == ["release"]
    assert state.handle is None


def test_rebinding_tears_down_the_old_handle() -> None:
    connector = _Connector()
    state = ConnectionState()
    state.bind("dbi:Mock:one", connector)
    old = state.get_handle()

    state.bind("dbi:Mock:two", connector)
    new = state.get_handle()

    assert old.closed is True
    assert new is not old
    assert state.connection_count == 2


def test_adopt_handle_bypasses_connecting() -> None:
    connector = _Connector()
    state = ConnectionState()
    state.bind("dbi:Mock:", connector)
    shared = _Handle()

    state.adopt_handle(shared)

    assert state.get_handle() is shared
    assert connector.calls == []


def test_finalize_honours_keepalive() -> None:
    state = ConnectionState()
    state.bind("dbi:Mock:", _Connector())
    handle = state.get_handle()

    state.keepalive = True
    state.finalize()
    assert handle.closed is False

    state.keepalive = False
    state.finalize()
    assert handle.closed is True


def test_engine_handle_runs_against_sqlite() -> None:
    handle = EngineHandle(create_engine("sqlite://"))

    try:
        assert handle.run(lambda conn: conn.execute(text("select 1 + 1")).scalar_one()) == 2
    finally:
        handle.close()

    assert handle.closed is True
    with pytest.raises(HandleClosedError):
        handle.run(lambda conn: None)
    handle.close()


class _FakeAsyncConnection:
    def __init__(self) -> None:
        self.events: list[str] = []

    async def run_sync(self, fn: Callable[[Any], Any]) -> Any:
        self.events.append("run_sync")
        return fn("sync-connection")

    async def rollback(self) -> None:
        self.events.append("rollback")

    async def close(self) -> None:
        self.events.append("close")


class _FakeAsyncEngine:
    def __init__(self) -> None:
        self.connection = _FakeAsyncConnection()
        self.disposed = False

    async def connect(self) -> _FakeAsyncConnection:
        return self.connection

    async def dispose(self) -> None:
        self.disposed = True


def test_async_engine_handle_drives_run_sync_from_a_loop_thread() -> None:
    engine = _FakeAsyncEngine()
    handle = AsyncEngineHandle(engine)  # type: ignore[arg-type]

    try:
        assert handle.run(lambda conn: f"ran on {conn}") == "ran on sync-connection"
    finally:
        handle.close()

    assert engine.connection.events == ["run_sync", "rollback", "close"]
    assert engine.disposed is True
    assert handle.closed is True


def test_async_engine_handle_surfaces_connect_errors() -> None:
    class _Broken(_FakeAsyncEngine):
        async def connect(self) -> _FakeAsyncConnection:
            raise OSError("connection refused")

    with pytest.raises(OSError):
        AsyncEngineHandle(_Broken())  # type: ignore[arg-type]
