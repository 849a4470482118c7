"""Tests for class name normalisation, import injection and class generation."""

from __future__ import annotations

import sys
import types

import pytest

import examples.imports.exporter as exporter
import examples.imports.mock_plugin as mock_plugin
from examples.drivers.mock_driver import MockBackend, MockDriver, MockViewRecord
from viewloader.cache import ClassCache
from viewloader.drivers import DriverRegistry
from viewloader.errors import NoHandlerLoaded, NoImportFunctionWarning
from viewloader.loader import ViewLoader
from viewloader.synthesis import (
    ClassSynthesizer,
    GeneratedView,
    ImportInjector,
    public_names,
    resolve_object,
    view_to_class,
)


class Auditable:
    """Mixin placed after the driver base."""

    audited = True


class Describable:
    """Mixin placed before the driver base."""

    def describe(self) -> str:
        return "left"


def test_view_to_class_capitalises_and_joins() -> None:
    assert view_to_class("NamingTest", "my_view") == "NamingTest.MyView"
    assert view_to_class(None, "live-foo bar") == "LiveFooBar"
    assert view_to_class("app.views", "sales__by_month") == "app.views.SalesByMonth"


def test_empty_view_name_gives_empty_string() -> None:
    assert view_to_class("NamingTest", "") == ""
    assert view_to_class("NamingTest", None) == ""
    assert view_to_class(None, "__") == ""


def test_resolve_object_imports_modules_and_attributes() -> None:
    assert resolve_object("examples.imports.exporter") is exporter
    assert resolve_object("examples.imports.exporter:export") is exporter.export
    assert resolve_object("examples.imports.exporter.export") is exporter.export
    assert resolve_object(Auditable) is Auditable
    with pytest.raises(ImportError):
        resolve_object("examples.imports.exporter.missing")
    with pytest.raises(ModuleNotFoundError):
        resolve_object("no_such_module_anywhere")


def test_public_names_follow_star_import_rules() -> None:
    module = types.ModuleType("scratch")
    module.visible = 1
    module._hidden = 2

    assert public_names(mock_plugin) == ["MockPluginLoaded", "describe"]
    assert public_names(module) == ["visible"]


def test_injector_exports_now_and_defers_plain_modules() -> None:
    cls = type("Target", (), {})
    deferred: list[tuple[type, types.ModuleType]] = []

    injected = ImportInjector().inject(cls, [exporter, "examples.imports.mock_plugin"], deferred)

    assert injected == (exporter, mock_plugin)
    assert cls.exported_by == exporter.__name__
    assert not hasattr(cls, "MockPluginLoaded")
    assert deferred == [(cls, mock_plugin)]


def test_flush_preserves_order_and_scopes_each_class() -> None:
    first = types.ModuleType("first")
    first.__all__ = ["value"]
    first.value = "first"
    second = types.ModuleType("second")
    second.__all__ = ["value"]
    second.value = "second"
    one = type("One", (), {})
    two = type("Two", (), {})
    deferred = [(one, first), (two, first), (one, second)]

    ImportInjector().flush(deferred)

    assert one.value == "second"
    assert two.value == "first"
    assert deferred == []


def test_entries_without_import_capability_warn_and_are_skipped() -> None:
    cls = type("Target", (), {})

    with pytest.warns(NoImportFunctionWarning):
        injected = ImportInjector().inject(cls, [42])

    assert injected == ()


def test_inject_without_batch_flushes_immediately() -> None:
    cls = type("Target", (), {})

    ImportInjector().inject(cls, [mock_plugin])

    assert cls.MockPluginLoaded is True


def _loader(registry: DriverRegistry, backend: MockBackend, namespace: str, **arguments: object) -> ViewLoader:
    return ViewLoader(
        registry=registry,
        synthesizer=ClassSynthesizer(ClassCache()),
        dsn="dbi:Mock:",
        options={"backend": backend},
        namespace=namespace,
        **arguments,
    )


def test_synthesize_builds_a_read_only_composite_key_class(
    registry: DriverRegistry, backend: MockBackend, namespace: str
) -> None:
    loader = _loader(
        registry,
        backend,
        namespace,
        base_classes=[Auditable],
        left_base_classes=[Describable],
        import_classes=[exporter, mock_plugin],
    )

    cls = loader.create_class("data", ["a", "b"])

    assert cls.__name__ == "Data"
    assert cls.__module__ == namespace
    assert cls.__bases__ == (Describable, MockViewRecord, Auditable)
    assert cls.__view__ == "data"
    assert cls.columns() == ("a", "b")
    assert cls.__read_only__ is True
    assert cls.has_db() is True
    assert cls.exported_by == exporter.__name__
    assert cls.MockPluginLoaded is True
    descriptor = cls.__view_descriptor__
    assert isinstance(descriptor, GeneratedView)
    assert descriptor.qualified_name == f"{namespace}.Data"
    assert descriptor.primary_key == ("a", "b")
    assert descriptor.imports == (exporter, mock_plugin)


def test_synthesize_is_idempotent_without_side_effects(
    registry: DriverRegistry, backend: MockBackend, namespace: str
) -> None:
    loader = _loader(registry, backend, namespace, import_classes=[exporter])
    before = len(exporter.EXPORTED)

    first = loader.create_class("data", ["a", "b"])
    second = loader.create_class("data", ["a", "b", "c"])

    assert first is second
    assert second.columns() == ("a", "b")
    assert len(exporter.EXPORTED) == before + 1


def test_inherited_main_slot_is_not_rebound(
    registry: DriverRegistry, backend: MockBackend, namespace: str
) -> None:
    base = type("Connected", (MockViewRecord,), {})
    base.set_db("dbi:Mock:elsewhere", options={"backend": backend})
    loader = _loader(registry, backend, namespace, left_base_classes=[base])

    cls = loader.create_class("data", ["a"])

    assert "_db_main" not in vars(cls)
    assert cls._db_main is base._db_main


def test_synthesize_needs_a_bound_driver(namespace: str) -> None:
    loader = ViewLoader(registry=DriverRegistry(), namespace=namespace)

    with pytest.raises(NoHandlerLoaded):
        loader.create_class("data", ["a"])


def test_synthesize_refuses_empty_views(registry: DriverRegistry, backend: MockBackend, namespace: str) -> None:
    loader = _loader(registry, backend, namespace)

    with pytest.raises(ValueError):
        loader.create_class("", ["a"])
    with pytest.raises(ValueError):
        loader.create_class("data", [])


def test_class_is_attached_to_an_imported_namespace_module(
    registry: DriverRegistry, backend: MockBackend, namespace: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    module = types.ModuleType(namespace)
    monkeypatch.setitem(sys.modules, namespace, module)
    loader = _loader(registry, backend, namespace)

    cls = loader.create_class("live_data", ["a"])

    assert module.LiveData is cls


class ReportingDriver(MockDriver):
    token = "Reporting"
    schema = "reporting"


def test_generated_class_queries_the_driver_schema(backend: MockBackend, namespace: str) -> None:
    loader = ViewLoader(
        registry=DriverRegistry(builtin_drivers=[ReportingDriver]),
        synthesizer=ClassSynthesizer(ClassCache()),
        dsn="dbi:Reporting:",
        options={"backend": backend},
        namespace=namespace,
    )

    cls = loader.create_class("data", ["a", "b"])

    assert cls.__table__.schema == "reporting"
    assert cls.__table__.fullname == "reporting.data"
    assert cls.__view__ == "data"
