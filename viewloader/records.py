"""Record classes for loaded views, backed by SQLAlchemy Core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable, Mapping, TypeVar

from sqlalchemy import Column, Connection, MetaData, Table, delete, func, insert, select, update

from .errors import ConnectionFailed, NoHandlerLoaded, ReadOnlyError

if TYPE_CHECKING:
    from .connections import Connector, DatabaseHandle
    from .drivers.base import ViewDriver


R = TypeVar("R", bound="ViewRecord")


class DbMain:
    """Connect arguments bound to a record class; connects on first use."""

    def __init__(
        self,
        connector: Connector,
        dsn: str,
        username: str | None = None,
        password: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self._connector = connector
        self.dsn = dsn
        self.username = username
        self.password = password
        self.options = dict(options or {})
        self._handle: DatabaseHandle | None = None

    def handle(self) -> DatabaseHandle:
        """Return the open handle, reconnecting if the previous one was closed."""

        if self._handle is None or self._handle.closed:
            try:
                self._handle = self._connector(self.dsn, self.username, self.password, dict(self.options))
            except Exception as exc:
                raise ConnectionFailed(exc) from exc
        return self._handle

    def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()


class ViewRecord:
    """Base class for generated view classes.

    A record class is bound to one table or view and a composite primary key.
    Once :meth:`make_read_only` has been called every write, class or
    instance level, raises :class:`ReadOnlyError`.
    """

    __driver__: ClassVar[type[ViewDriver] | None] = None
    __view__: ClassVar[str | None] = None
    __table__: ClassVar[Table | None] = None
    __schema__: ClassVar[str | None] = None
    __primary_key__: ClassVar[tuple[str, ...]] = ()
    __read_only__: ClassVar[bool] = False
    _db_main: ClassVar[DbMain | None] = None

    def __init__(self, **values: Any) -> None:
        columns = type(self).columns()
        if columns:
            unknown = sorted(set(values) - set(columns))
            if unknown:
                raise TypeError(f"Unknown column(s) for {type(self).__qualname__}: {', '.join(unknown)}")
        object.__setattr__(self, "_values", dict(values))

    # class-wide database binding

    @classmethod
    def set_db(
        cls,
        dsn: str,
        username: str | None = None,
        password: str | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        connector: Connector | None = None,
    ) -> None:
        """Bind the main database slot for this class and its subclasses."""

        if connector is None:
            if cls.__driver__ is None:
                raise NoHandlerLoaded()
            connector = cls.__driver__.connect
        cls._db_main = DbMain(connector, dsn, username, password, options)

    @classmethod
    def has_db(cls) -> bool:
        """True when this class or an ancestor has a main slot bound."""

        return cls._db_main is not None

    @classmethod
    def db_main(cls) -> DatabaseHandle:
        if cls._db_main is None:
            raise ConnectionFailed(f"no database bound to {cls.__qualname__}")
        return cls._db_main.handle()

    @classmethod
    def close_db(cls) -> None:
        """Close the main slot's handle; the next query reconnects."""

        if cls._db_main is not None:
            cls._db_main.close()

    # table declaration

    @classmethod
    def set_table(cls, name: str, schema: str | None = None) -> None:
        """Bind the table or view; ``schema`` overrides a dotted ``schema.name``."""

        cls.__view__ = name
        cls.__schema__ = schema
        if cls.__primary_key__:
            cls.__table__ = _build_table(name, cls.__primary_key__, schema)

    @classmethod
    def set_primary_columns(cls, columns: Iterable[str]) -> None:
        """Declare ``columns`` together as the composite primary key."""

        names = tuple(columns)
        if not names:
            raise ValueError("A primary key needs at least one column")
        if cls.__view__ is None:
            raise ValueError(f"{cls.__qualname__} has no table; call set_table() first")
        cls.__primary_key__ = names
        cls.__table__ = _build_table(cls.__view__, names, cls.__schema__)

    @classmethod
    def make_read_only(cls) -> None:
        cls.__read_only__ = True

    @classmethod
    def columns(cls) -> tuple[str, ...]:
        return cls.__primary_key__

    # queries

    @classmethod
    def retrieve_all(cls: type[R]) -> list[R]:
        table = cls._require_table()
        rows = cls._run(lambda conn: conn.execute(select(table)).mappings().all())
        return [cls._from_row(row) for row in rows]

    @classmethod
    def search(cls: type[R], **criteria: Any) -> list[R]:
        table = cls._require_table()
        unknown = sorted(set(criteria) - set(table.c.keys()))
        if unknown:
            raise ValueError(f"Unknown column(s) for {cls.__qualname__}: {', '.join(unknown)}")
        clauses = [
            table.c[name].is_(None) if value is None else table.c[name] == value
            for name, value in criteria.items()
        ]
        statement = select(table).where(*clauses)
        rows = cls._run(lambda conn: conn.execute(statement).mappings().all())
        return [cls._from_row(row) for row in rows]

    @classmethod
    def count_all(cls) -> int:
        table = cls._require_table()
        statement = select(func.count()).select_from(table)
        return int(cls._run(lambda conn: conn.execute(statement).scalar_one()))

    # writes

    @classmethod
    def insert(cls: type[R], **values: Any) -> R:
        cls._check_writable("insert")
        record = cls(**values)
        table = cls._require_table()
        cls._run(_committing(insert(table).values(**values)))
        return record

    def update(self, **values: Any) -> None:
        cls = type(self)
        cls._check_writable("update")
        table = cls._require_table()
        statement = update(table).where(*self._key_clauses(table)).values(**values)
        cls._run(_committing(statement))
        self._values.update(values)

    def delete(self) -> None:
        cls = type(self)
        cls._check_writable("delete")
        table = cls._require_table()
        cls._run(_committing(delete(table).where(*self._key_clauses(table))))

    # instance behaviour

    def primary_values(self) -> tuple[Any, ...]:
        return tuple(self._values.get(name) for name in type(self).columns())

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__.get("_values", {})
        if name in values:
            return values[name]
        if name in type(self).columns():
            return None
        raise AttributeError(f"{type(self).__qualname__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        cls = type(self)
        if cls.__read_only__:
            raise ReadOnlyError(cls, f"set {name}")
        if name in cls.columns():
            self._values[name] = value
        else:
            object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        cls = type(self)
        if cls.__read_only__:
            raise ReadOnlyError(cls, f"delete {name}")
        if name in self._values:
            del self._values[name]
        else:
            object.__delattr__(self, name)

    def __bool__(self) -> bool:
        # Falsy only when every key column is unset.
        keys = type(self).columns() or tuple(self._values)
        return any(self._values.get(name) is not None for name in keys)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.primary_values() == other.primary_values()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self.primary_values()))

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={value!r}" for name, value in self._values.items())
        return f"{type(self).__name__}({fields})"

    @classmethod
    def _from_row(cls: type[R], row: Mapping[str, Any]) -> R:
        record = cls.__new__(cls)
        object.__setattr__(record, "_values", dict(row))
        return record

    @classmethod
    def _require_table(cls) -> Table:
        if cls.__table__ is None:
            raise ValueError(f"{cls.__qualname__} has no table or primary key declared")
        return cls.__table__

    @classmethod
    def _check_writable(cls, operation: str) -> None:
        if cls.__read_only__:
            raise ReadOnlyError(cls, operation)

    @classmethod
    def _run(cls, fn: Callable[[Connection], Any]) -> Any:
        return cls.db_main().run(fn)

    def _key_clauses(self, table: Table) -> list[Any]:
        return [
            table.c[name].is_(None) if value is None else table.c[name] == value
            for name, value in zip(type(self).columns(), self.primary_values())
        ]


def _build_table(name: str, columns: tuple[str, ...], schema: str | None = None) -> Table:
    if schema is None:
        schema, _, name = name.rpartition(".")
    return Table(
        name,
        MetaData(),
        *(Column(column, primary_key=True) for column in columns),
        schema=schema or None,
    )


def _committing(statement: Any) -> Callable[[Connection], None]:
    def _execute(conn: Connection) -> None:
        conn.execute(statement)
        conn.commit()

    return _execute


__all__ = ["DbMain", "ViewRecord"]
