"""Shared fixtures: a registry that only knows the example drivers."""

from __future__ import annotations

import importlib.metadata as metadata
import uuid

import pytest

from examples.drivers.mock_driver import MockBackend, MockDriver, PartialDriver
from viewloader.drivers import DriverRegistry, SQLiteDriver


@pytest.fixture(autouse=True)
def no_entry_points(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep installed entry points out of discovery."""

    monkeypatch.setattr(metadata, "entry_points", lambda: metadata.EntryPoints(()))


@pytest.fixture
def registry() -> DriverRegistry:
    return DriverRegistry(builtin_drivers=[MockDriver, PartialDriver, SQLiteDriver])


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend({"empty": (), "data": ("a", "b")})


@pytest.fixture
def namespace() -> str:
    """Unique namespace so the process-wide class cache never leaks between tests."""

    return f"Test{uuid.uuid4().hex[:8]}"
