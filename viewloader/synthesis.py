"""Generating record classes for views."""

from __future__ import annotations

import logging
import re
import sys
import warnings
from dataclasses import dataclass
from importlib import import_module
from types import ModuleType
from typing import TYPE_CHECKING, Iterable, Sequence

from .cache import CLASS_CACHE, ClassCache
from .errors import NoImportFunctionWarning
from .records import ViewRecord

if TYPE_CHECKING:
    from .loader import ViewLoader

LOG = logging.getLogger(__name__)

GENERATED_MODULE = "viewloader.generated"

_SEGMENT_SPLIT = re.compile(r"[\W_]+")

DeferredImport = tuple[type, ModuleType]


@dataclass(frozen=True, slots=True)
class GeneratedView:
    """What a generated class was built from."""

    qualified_name: str
    view: str
    bases: tuple[type, ...]
    primary_key: tuple[str, ...]
    read_only: bool = True
    imports: tuple[object, ...] = ()


def view_to_class(namespace: str | None, view: str | None) -> str:
    """Turn ``my_view`` into ``<namespace>.MyView``.

    An empty view name gives an empty string whatever the namespace.
    """

    if not view:
        return ""
    name = "".join(segment[:1].upper() + segment[1:] for segment in _SEGMENT_SPLIT.split(view) if segment)
    if not name:
        return ""
    return ".".join(part for part in (namespace, name) if part)


def resolve_object(target: object) -> object:
    """Import ``"pkg.mod"``, ``"pkg.mod:Name"`` or ``"pkg.mod.Name"``; pass other objects through."""

    if not isinstance(target, str):
        return target
    module_name, sep, attribute = target.partition(":")
    if sep:
        obj: object = import_module(module_name)
        for part in attribute.split("."):
            obj = getattr(obj, part)
        return obj
    try:
        return import_module(target)
    except ModuleNotFoundError as exc:
        if exc.name != target:
            raise
        module_name, _, attribute = target.rpartition(".")
        if not module_name:
            raise
        module = import_module(module_name)
        try:
            return getattr(module, attribute)
        except AttributeError:
            raise ImportError(f"cannot import name {attribute!r} from {module_name!r}") from exc


def public_names(module: ModuleType) -> list[str]:
    """Names a star import of ``module`` would bind."""

    names = getattr(module, "__all__", None)
    if names is not None:
        return list(names)
    return [name for name in vars(module) if not name.startswith("_")]


class ImportInjector:
    """Attaches extra capabilities to generated classes.

    Objects with a callable ``export(target)`` are applied straight away.
    Plain modules are deferred and later star-imported into their class by
    :meth:`flush`, in the order they were deferred.
    """

    def inject(
        self,
        cls: type,
        imports: Iterable[object],
        deferred: list[DeferredImport] | None = None,
    ) -> tuple[object, ...]:
        pending: list[DeferredImport] = [] if deferred is None else deferred
        injected: list[object] = []
        for entry in imports:
            target = resolve_object(entry)
            export = getattr(target, "export", None)
            if callable(export):
                export(cls)
                injected.append(target)
            elif isinstance(target, ModuleType):
                pending.append((cls, target))
                injected.append(target)
            else:
                warnings.warn(NoImportFunctionWarning(entry), stacklevel=2)
        if deferred is None:
            self.flush(pending)
        return tuple(injected)

    def flush(self, deferred: list[DeferredImport]) -> None:
        for cls, module in deferred:
            for name in public_names(module):
                setattr(cls, name, getattr(module, name))
        deferred.clear()


class ClassSynthesizer:
    """Builds, or returns the cached, record class for a view."""

    def __init__(self, cache: ClassCache = CLASS_CACHE, injector: ImportInjector | None = None) -> None:
        self.cache = cache
        self.injector = injector or ImportInjector()

    def synthesize(
        self,
        loader: ViewLoader,
        view: str,
        columns: Sequence[str],
        deferred: list[DeferredImport] | None = None,
    ) -> type[ViewRecord]:
        """Return the class for ``view``; generated classes are cached for good.

        A cache hit has no side effects: no database binding and no import
        injection.
        """

        name = loader.view_to_class(view)
        if not name:
            raise ValueError(f"Can't generate a class name for view {view!r}")
        with self.cache.lock:
            existing = self.cache.get(name)
            if existing is not None:
                LOG.debug("Reusing generated class", extra={"view": view, "class": name})
                return existing  # type: ignore[return-value]
            cls = self._build(loader, name, view, tuple(columns), deferred)
            self.cache.add(name, cls)
        _attach_to_namespace(cls, loader.namespace)
        LOG.debug("Generated class", extra={"view": view, "class": name})
        return cls

    def _build(
        self,
        loader: ViewLoader,
        name: str,
        view: str,
        columns: tuple[str, ...],
        deferred: list[DeferredImport] | None,
    ) -> type[ViewRecord]:
        if not columns:
            raise ValueError(f"View {view!r} has no columns")
        driver_base = loader.base_class()
        bases = _unique((*loader.left_base_classes, driver_base, *loader.base_classes))
        namespace, _, class_name = name.rpartition(".")
        cls: type[ViewRecord] = type(
            class_name,
            bases,
            {
                "__module__": namespace or GENERATED_MODULE,
                "__qualname__": class_name,
                "__doc__": f"Read-only records of the {view} view.",
            },
        )

        # An inherited main slot wins over the loader's own credentials.
        if not cls.has_db():
            dsn, username, password, options = loader.connection_args()
            cls.set_db(dsn, username, password, options, connector=loader.driver.connect)

        cls.make_read_only()
        cls.set_table(view, schema=loader.driver.schema)
        cls.set_primary_columns(columns)
        imports = self.injector.inject(cls, loader.import_classes, deferred)
        cls.__view_descriptor__ = GeneratedView(
            qualified_name=name,
            view=view,
            bases=bases,
            primary_key=columns,
            imports=imports,
        )
        return cls


def _unique(classes: Iterable[type]) -> tuple[type, ...]:
    seen: list[type] = []
    for cls in classes:
        if cls not in seen:
            seen.append(cls)
    return tuple(seen)


def _attach_to_namespace(cls: type, namespace: str | None) -> None:
    if not namespace:
        return
    module = sys.modules.get(namespace)
    if module is None or hasattr(module, cls.__name__):
        return
    setattr(module, cls.__name__, cls)


__all__ = [
    "ClassSynthesizer",
    "DeferredImport",
    "GENERATED_MODULE",
    "GeneratedView",
    "ImportInjector",
    "public_names",
    "resolve_object",
    "view_to_class",
]
