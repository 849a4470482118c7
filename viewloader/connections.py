"""Database handles and the per-loader connection state."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Coroutine, Mapping, Protocol, TypeVar, runtime_checkable

from sqlalchemy import Connection, Engine
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .errors import ConnectionFailed, NoDsn, NoHandlerLoaded

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class HandleClosedError(RuntimeError):
    """Raised when a closed handle is used."""


@runtime_checkable
class DatabaseHandle(Protocol):
    """Protocol implemented by live database handles."""

    def run(self, fn: Callable[[Connection], T]) -> T:
        """Call ``fn`` with a synchronous SQLAlchemy connection and return its result."""

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has been called."""

    def close(self) -> None:
        """Release the handle; calling it twice is a no-op."""


Connector = Callable[[str, str | None, str | None, Mapping[str, Any]], DatabaseHandle]


class EngineHandle:
    """Handle over a synchronous SQLAlchemy engine with one open connection."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._conn: Connection | None = engine.connect()

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._conn is None

    def run(self, fn: Callable[[Connection], T]) -> T:
        conn = self._conn
        if conn is None:
            raise HandleClosedError("Handle is closed")
        try:
            return fn(conn)
        finally:
            conn.rollback()

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        finally:
            self._engine.dispose()


class AsyncEngineHandle:
    """Handle over a SQLAlchemy asyncio engine, driven from a private loop thread."""

    def __init__(self, engine: AsyncEngine, *, thread_name: str = "viewloader-async-handle") -> None:
        self._engine = engine
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name=thread_name,
            daemon=True,
        )
        self._loop_thread.start()
        try:
            self._conn: AsyncConnection | None = self._submit(self._open())
        except BaseException:
            self._stop_loop()
            raise

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._conn is None

    def run(self, fn: Callable[[Connection], T]) -> T:
        conn = self._conn
        if conn is None:
            raise HandleClosedError("Handle is closed")
        return self._submit(self._call(conn, fn))

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            self._submit(self._close(conn))
        finally:
            self._stop_loop()

    async def _open(self) -> AsyncConnection:
        return await self._engine.connect()

    @staticmethod
    async def _call(conn: AsyncConnection, fn: Callable[[Connection], T]) -> T:
        try:
            return await conn.run_sync(fn)
        finally:
            await conn.rollback()

    async def _close(self, conn: AsyncConnection) -> None:
        try:
            await conn.close()
        finally:
            await self._engine.dispose()

    def _submit(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        if not self._loop.is_running():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._loop_thread.join(timeout=1)
        if not self._loop.is_running():
            self._loop.close()


class ConnectionState:
    """Credentials plus the lazily established, exclusively owned handle."""

    def __init__(self) -> None:
        self.dsn: str | None = None
        self.username: str | None = None
        self.password: str | None = None
        self.keepalive = False
        self.connection_count = 0
        self._options: dict[str, Any] = {}
        self._handle: DatabaseHandle | None = None
        self._connector: Connector | None = None
        self._release: Callable[[], None] | None = None

    @property
    def options(self) -> dict[str, Any]:
        """Live options mapping passed to the connector."""

        return self._options

    @options.setter
    def options(self, value: Mapping[str, Any] | None) -> None:
        self._options = dict(value or {})

    @property
    def handle(self) -> DatabaseHandle | None:
        """The cached handle, without connecting."""

        return self._handle

    def bind(
        self,
        dsn: str,
        connector: Connector,
        release: Callable[[], None] | None = None,
    ) -> None:
        """Adopt a new dsn and driver connector, tearing down the old handle first."""

        self.clear_handle()
        self.dsn = dsn
        self._connector = connector
        self._release = release

    def connect_args(self) -> tuple[str | None, str | None, str | None, dict[str, Any]]:
        return self.dsn, self.username, self.password, dict(self._options)

    def get_handle(self) -> DatabaseHandle:
        """Return the cached handle or establish a new one."""

        if self._handle is not None:
            return self._handle
        if self._connector is None:
            raise NoHandlerLoaded()
        if not self.dsn:
            raise NoDsn()
        dsn, username, password, options = self.connect_args()
        try:
            handle = self._connector(dsn, username, password, options)
        except ConnectionFailed:
            raise
        except Exception as exc:
            LOG.debug("Connection attempt failed", extra={"dsn": dsn, "error": str(exc)})
            raise ConnectionFailed(exc) from exc
        self.connection_count += 1
        self._handle = handle
        LOG.debug("Connected", extra={"dsn": dsn, "connections": self.connection_count})
        return handle

    def adopt_handle(self, handle: DatabaseHandle) -> None:
        """Use an existing handle instead of establishing one."""

        if handle is self._handle:
            return
        self.clear_handle()
        self._handle = handle

    def clear_handle(self) -> None:
        """Release driver state derived from the handle, then close it."""

        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            if self._release is not None:
                self._release()
        finally:
            handle.close()
        LOG.debug("Handle cleared", extra={"dsn": self.dsn})

    def finalize(self) -> None:
        """Teardown used on destruction; skipped when keepalive is set."""

        if self.keepalive:
            LOG.debug("Keeping handle alive", extra={"dsn": self.dsn})
            return
        self.clear_handle()


__all__ = [
    "AsyncEngineHandle",
    "ConnectionState",
    "Connector",
    "DatabaseHandle",
    "EngineHandle",
    "HandleClosedError",
]
