"""PostgreSQL driver running asyncpg through SQLAlchemy's asyncio engine."""

from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import URL
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from ..connections import AsyncEngineHandle
from ..dsn import parse_dsn
from ..records import ViewRecord
from .base import InspectorDriver

DEFAULT_CONNECT_TIMEOUT = 3.0


class PgViewRecord(ViewRecord):
    """Base class for views loaded from PostgreSQL."""


class PgDriver(InspectorDriver):
    """Loads views from PostgreSQL, e.g. ``dbi:Pg:dbname=mydb;host=db;port=5432``."""

    token = "Pg"

    def base_class(self) -> type[ViewRecord]:
        return PgViewRecord

    @classmethod
    def url_for(cls, dsn: str, username: str | None = None, password: str | None = None) -> URL:
        parts = parse_dsn(dsn)
        port = parts.get("port")
        return URL.create(
            "postgresql+asyncpg",
            username=username or parts.get("user"),
            password=password or parts.get("password"),
            host=parts.get("host"),
            port=int(port) if port else None,
            database=parts.database,
        )

    @classmethod
    def connect(
        cls,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> AsyncEngineHandle:
        connect_args = dict(options)
        connect_args.setdefault("timeout", DEFAULT_CONNECT_TIMEOUT)
        engine = create_async_engine(
            cls.url_for(dsn, username, password),
            connect_args=connect_args,
            poolclass=NullPool,
        )
        return AsyncEngineHandle(engine, thread_name="viewloader-pg")


PgViewRecord.__driver__ = PgDriver

__all__ = ["DEFAULT_CONNECT_TIMEOUT", "PgDriver", "PgViewRecord"]
