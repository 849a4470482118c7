"""Driver contract shared by the registry, the loader and driver implementations."""

from __future__ import annotations

import inspect
from typing import Any, ClassVar, Mapping

from sqlalchemy import inspect as inspect_db

from ..connections import ConnectionState, DatabaseHandle
from ..errors import MethodNotOverridden
from ..records import ViewRecord

CAPABILITIES = ("base_class", "get_views", "get_view_cols", "connect")


class ViewDriver:
    """Database specific behaviour a loader is bound to once its dsn is known.

    Subclasses override :meth:`base_class`, :meth:`get_views`,
    :meth:`get_view_cols` and :meth:`connect`. Anything left alone raises
    :class:`MethodNotOverridden` when called. All four make up the
    compliance set checked by :func:`missing_capabilities`: a driver without
    ``connect`` can never open a handle, so it is reported like the others.

    ``schema`` names the database schema views are read from and generated
    classes query; ``None`` means the connection's default.
    """

    token: ClassVar[str] = ""
    schema: ClassVar[str | None] = None

    def __init__(self, state: ConnectionState) -> None:
        self.state = state

    def base_class(self) -> type[ViewRecord]:
        """Return the record class generated classes inherit from."""

        raise MethodNotOverridden("base_class", type(self))

    def get_views(self) -> list[str]:
        """Return the names of all views in the database."""

        raise MethodNotOverridden("get_views", type(self))

    def get_view_cols(self, view: str) -> list[str]:
        """Return the column names of ``view``."""

        raise MethodNotOverridden("get_view_cols", type(self))

    @classmethod
    def connect(
        cls,
        dsn: str,
        username: str | None,
        password: str | None,
        options: Mapping[str, Any],
    ) -> DatabaseHandle:
        """Open a new handle for ``dsn``."""

        raise MethodNotOverridden("connect", cls)

    def handle(self) -> DatabaseHandle:
        return self.state.get_handle()

    def release(self) -> None:
        """Drop state derived from the current handle."""


def missing_capabilities(driver: type) -> tuple[str, ...]:
    """Return the capabilities ``driver`` leaves to the ViewDriver defaults."""

    missing: list[str] = []
    for name in CAPABILITIES:
        implementation = inspect.getattr_static(driver, name, None)
        default = inspect.getattr_static(ViewDriver, name)
        if isinstance(implementation, classmethod):
            implementation = implementation.__func__
            default = default.__func__
        if implementation is None or implementation is default:
            missing.append(name)
    return tuple(missing)


class InspectorDriver(ViewDriver):
    """Views and columns read through SQLAlchemy's inspector.

    Column lists are cached per view for as long as the handle lives.
    """

    def __init__(self, state: ConnectionState) -> None:
        super().__init__(state)
        self._columns: dict[str, tuple[str, ...]] = {}

    def get_views(self) -> list[str]:
        schema = self.schema
        return list(self.handle().run(lambda conn: inspect_db(conn).get_view_names(schema=schema)))

    def get_view_cols(self, view: str) -> list[str]:
        cached = self._columns.get(view)
        if cached is None:
            schema = self.schema
            columns = self.handle().run(lambda conn: inspect_db(conn).get_columns(view, schema=schema))
            cached = self._columns[view] = tuple(str(column["name"]) for column in columns)
        return list(cached)

    def release(self) -> None:
        self._columns.clear()


__all__ = ["CAPABILITIES", "InspectorDriver", "ViewDriver", "missing_capabilities"]
