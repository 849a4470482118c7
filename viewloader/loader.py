"""The view loader: driver dispatch, filtering and class generation."""

from __future__ import annotations

import logging
import re
import warnings
from typing import Any, Iterable, Mapping

from .config import LoaderProfile, ViewLoaderSettings, load_config, normalize_arguments
from .connections import ConnectionState, DatabaseHandle
from .drivers.base import ViewDriver
from .drivers.registry import DriverRegistry, default_registry
from .errors import NoColumnsWarning, NoDsn, NoHandlerLoaded
from .patterns import PatternFilter, PatternLike, compile_pattern
from .records import ViewRecord
from .synthesis import ClassSynthesizer, DeferredImport, resolve_object, view_to_class

LOG = logging.getLogger(__name__)


class ViewLoader:
    """Loads database views as read-only record classes.

    The loader starts unbound. Setting :attr:`dsn` looks the driver token up
    in the registry and binds the matching driver, which supplies the view
    listing, column listing, connection and record base class::

        loader = ViewLoader(
            dsn="dbi:Pg:dbname=mydb",
            username="me",
            password="secret",
            namespace="myapp.views",
            exclude=r"^te(?:st|mp)_",
        )
        for cls in loader.load_views():
            print(cls.__name__, cls.retrieve_all())

    Keyword arguments go through the same properties available afterwards,
    dsn first. Generated classes are cached process-wide: loading the same
    view into the same namespace again returns the same class object.
    """

    def __init__(
        self,
        *,
        registry: DriverRegistry | None = None,
        synthesizer: ClassSynthesizer | None = None,
        **arguments: Any,
    ) -> None:
        self._registry = registry
        self._synthesizer = synthesizer or ClassSynthesizer()
        self._state = ConnectionState()
        self._driver: ViewDriver | None = None
        self._namespace: str | None = None
        self._include: re.Pattern[str] | None = None
        self._exclude: re.Pattern[str] | None = None
        self._base_classes: tuple[type, ...] = ()
        self._left_base_classes: tuple[type, ...] = ()
        self._import_classes: tuple[object, ...] = ()

        arguments = normalize_arguments(arguments)
        # dsn first: binding a driver must not discard the other settings
        dsn = arguments.pop("dsn", None)
        if dsn:
            self.dsn = dsn
        for name, value in arguments.items():
            setattr(self, name, value)

    @classmethod
    def from_profile(
        cls,
        name: str | None = None,
        settings: ViewLoaderSettings | None = None,
        *,
        registry: DriverRegistry | None = None,
    ) -> ViewLoader:
        """Build a loader from a profile in the configuration file."""

        settings = settings or load_config()
        profile: LoaderProfile = settings.profile(name)
        if registry is None:
            registry = DriverRegistry.from_settings(settings)
        return cls(registry=registry, **profile.loader_arguments())

    # driver binding

    @property
    def registry(self) -> DriverRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    @property
    def dsn(self) -> str | None:
        """The dsn exactly as it was set."""

        return self._state.dsn

    @dsn.setter
    def dsn(self, value: str) -> None:
        if not value:
            raise NoDsn()
        handler = self.registry.resolve(value)
        driver = handler(self._state)
        self._state.bind(value, handler.connect, driver.release)
        self._driver = driver
        LOG.debug("Bound driver", extra={"dsn": value, "driver": handler.__qualname__})

    @property
    def driver(self) -> ViewDriver:
        """The bound driver; raises :class:`NoHandlerLoaded` while unbound."""

        if self._driver is None:
            raise NoHandlerLoaded()
        return self._driver

    @property
    def is_bound(self) -> bool:
        return self._driver is not None

    # credentials

    @property
    def username(self) -> str | None:
        return self._state.username

    @username.setter
    def username(self, value: object) -> None:
        self._state.username = None if value is None else str(value)

    @property
    def password(self) -> str | None:
        return self._state.password

    @password.setter
    def password(self, value: object) -> None:
        self._state.password = None if value is None else str(value)

    @property
    def options(self) -> dict[str, Any]:
        """Connection options; the returned dict is live."""

        return self._state.options

    @options.setter
    def options(self, value: Mapping[str, Any] | None) -> None:
        self._state.options = value

    @property
    def keepalive(self) -> bool:
        """When true, finalisation leaves the handle open."""

        return self._state.keepalive

    @keepalive.setter
    def keepalive(self, value: bool) -> None:
        self._state.keepalive = bool(value)

    def connection_args(self) -> tuple[str | None, str | None, str | None, dict[str, Any]]:
        return self._state.connect_args()

    # class generation settings

    @property
    def namespace(self) -> str | None:
        return self._namespace

    @namespace.setter
    def namespace(self, value: str | None) -> None:
        namespace = (value or "").rstrip(".")
        self._namespace = namespace or None

    @property
    def include(self) -> re.Pattern[str] | None:
        return self._include

    @include.setter
    def include(self, value: PatternLike) -> None:
        self._include = compile_pattern(value)

    @property
    def exclude(self) -> re.Pattern[str] | None:
        return self._exclude

    @exclude.setter
    def exclude(self, value: PatternLike) -> None:
        self._exclude = compile_pattern(value)

    @property
    def base_classes(self) -> tuple[type, ...]:
        """Bases placed after the driver's record class."""

        return self._base_classes

    @base_classes.setter
    def base_classes(self, value: Iterable[type | str] | type | str | None) -> None:
        self._base_classes = _resolve_classes(value)

    @property
    def left_base_classes(self) -> tuple[type, ...]:
        """Bases placed before the driver's record class."""

        return self._left_base_classes

    @left_base_classes.setter
    def left_base_classes(self, value: Iterable[type | str] | type | str | None) -> None:
        self._left_base_classes = _resolve_classes(value)

    @property
    def import_classes(self) -> tuple[object, ...]:
        """Modules or exporters applied to every generated class."""

        return self._import_classes

    @import_classes.setter
    def import_classes(self, value: Iterable[object] | str | None) -> None:
        self._import_classes = tuple(_as_sequence(value))

    # driver capabilities

    def base_class(self) -> type[ViewRecord]:
        return self.driver.base_class()

    def get_views(self) -> list[str]:
        return list(self.driver.get_views())

    def get_view_cols(self, view: str) -> list[str]:
        return list(self.driver.get_view_cols(view))

    # connection handling

    def get_handle(self) -> DatabaseHandle:
        """Return the cached handle, connecting if needed."""

        return self._state.get_handle()

    def clear_handle(self) -> None:
        self._state.clear_handle()

    def adopt_handle(self, handle: DatabaseHandle) -> None:
        """Use ``handle`` instead of connecting; it is owned by this loader from now on."""

        self._state.adopt_handle(handle)

    @property
    def connection_count(self) -> int:
        return self._state.connection_count

    def close(self) -> None:
        self._state.clear_handle()

    def __enter__(self) -> ViewLoader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._state.finalize()

    def __del__(self) -> None:
        state = self.__dict__.get("_state")
        if state is not None:
            state.finalize()

    # loading

    def filter_views(self, views: Iterable[str]) -> list[str]:
        return PatternFilter(self._include, self._exclude).apply(views)

    def view_to_class(self, view: str | None) -> str:
        return view_to_class(self._namespace, view)

    def create_class(
        self,
        view: str,
        columns: Iterable[str],
        deferred: list[DeferredImport] | None = None,
    ) -> type[ViewRecord]:
        """Generate, or fetch from the cache, the class for one view."""

        return self._synthesizer.synthesize(self, view, tuple(columns), deferred)

    def load_views(self) -> list[type[ViewRecord]]:
        """Generate classes for every view that passes include/exclude.

        Views without columns are skipped with a :class:`NoColumnsWarning`.
        Returns the classes in view order, cached ones included.
        """

        driver = self.driver
        views = self.filter_views(driver.get_views())
        deferred: list[DeferredImport] = []
        classes: list[type[ViewRecord]] = []
        for view in views:
            columns = driver.get_view_cols(view)
            if not columns:
                warnings.warn(NoColumnsWarning(view), stacklevel=2)
                continue
            classes.append(self.create_class(view, columns, deferred))
        self._synthesizer.injector.flush(deferred)
        LOG.debug("Loaded views", extra={"dsn": self.dsn, "classes": [cls.__qualname__ for cls in classes]})
        return classes

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dsn={self.dsn!r}, namespace={self._namespace!r})"


def _as_sequence(value: Iterable[Any] | Any | None) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes, type)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def _resolve_classes(value: Iterable[type | str] | type | str | None) -> tuple[type, ...]:
    classes: list[type] = []
    for entry in _as_sequence(value):
        resolved = resolve_object(entry)
        if not isinstance(resolved, type):
            raise TypeError(f"{entry!r} is not a class")
        classes.append(resolved)
    return tuple(classes)


__all__ = ["ViewLoader"]
