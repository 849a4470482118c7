"""SQLite driver."""

from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import URL, create_engine

from ..connections import EngineHandle
from ..dsn import parse_dsn
from ..records import ViewRecord
from .base import InspectorDriver


class SQLiteViewRecord(ViewRecord):
    """Base class for views loaded from SQLite."""


class SQLiteDriver(InspectorDriver):
    """Loads views from a SQLite file, e.g. ``dbi:SQLite:dbname=app.db``."""

    token = "SQLite"

    def base_class(self) -> type[ViewRecord]:
        return SQLiteViewRecord

    @classmethod
    def url_for(cls, dsn: str) -> URL:
        database = parse_dsn(dsn).database
        if database == ":memory:":
            database = None
        return URL.create("sqlite", database=database)

    @classmethod
    def connect(
        cls,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> EngineHandle:
        engine = create_engine(cls.url_for(dsn), connect_args=dict(options))
        return EngineHandle(engine)


SQLiteViewRecord.__driver__ = SQLiteDriver

__all__ = ["SQLiteDriver", "SQLiteViewRecord"]
