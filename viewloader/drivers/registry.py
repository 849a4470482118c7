"""Process-wide registry mapping dsn driver tokens to driver classes."""

from __future__ import annotations

import importlib.metadata as metadata
import inspect
import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping

from ..dsn import parse_dsn
from ..errors import HandlerNotASubclass, NoHandlerForDriver
from .base import ViewDriver, missing_capabilities
from .postgres import PgDriver
from .sqlite import SQLiteDriver

if TYPE_CHECKING:
    from ..config import ViewLoaderSettings

LOG = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "viewloader.drivers"

BUILTIN_DRIVERS: tuple[type[ViewDriver], ...] = (PgDriver, SQLiteDriver)


@dataclass(frozen=True, slots=True)
class DiscoveredDriver:
    """A registry entry; ``handler`` is whatever the entry point pointed at."""

    token: str
    handler: object
    entry_point: metadata.EntryPoint
    missing: tuple[str, ...] = ()


class DriverRegistry:
    """Discovers drivers exposed via entry points, once, on first use."""

    def __init__(
        self,
        *,
        entry_point_group: str = ENTRY_POINT_GROUP,
        builtin_drivers: Iterable[type[ViewDriver]] | None = None,
        enabled_drivers: Iterable[str] | None = None,
        disabled_drivers: Iterable[str] = (),
    ) -> None:
        self._entry_point_group = entry_point_group
        self._builtin_drivers = list(builtin_drivers or [])
        self._enabled: set[str] | None = set(enabled_drivers) if enabled_drivers is not None else None
        self._disabled = set(disabled_drivers)
        self._lock = threading.Lock()
        self._drivers: dict[str, DiscoveredDriver] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ViewLoaderSettings,
        *,
        builtin_drivers: Iterable[type[ViewDriver]] | None = BUILTIN_DRIVERS,
    ) -> DriverRegistry:
        enabled, disabled = settings.driver_filters()
        return cls(builtin_drivers=builtin_drivers, enabled_drivers=enabled, disabled_drivers=disabled)

    def discover(self) -> list[DiscoveredDriver]:
        """Populate the registry if needed and return its entries."""

        with self._lock:
            if self._drivers is None:
                self._drivers = self._discover()
            return list(self._drivers.values())

    @property
    def handlers(self) -> Mapping[str, object]:
        """Read-only token -> handler mapping."""

        self.discover()
        assert self._drivers is not None
        return MappingProxyType({token: entry.handler for token, entry in self._drivers.items()})

    def tokens(self) -> tuple[str, ...]:
        return tuple(sorted(self.handlers))

    def lookup(self, token: str, dsn: str = "") -> type[ViewDriver]:
        """Return the driver class for ``token``.

        The subclass check runs on every lookup so a bad entry point fails at
        the point of use, with the offending object in the error.
        """

        handler = self.handlers.get(token)
        if handler is None:
            raise NoHandlerForDriver(token, dsn)
        if not (inspect.isclass(handler) and issubclass(handler, ViewDriver)):
            raise HandlerNotASubclass(handler)
        return handler

    def resolve(self, dsn: str) -> type[ViewDriver]:
        """Parse ``dsn`` and return the driver class registered for its token."""

        return self.lookup(parse_dsn(dsn).driver, dsn)

    def _is_enabled(self, token: str) -> bool:
        if self._enabled is not None:
            return token in self._enabled
        return token not in self._disabled

    def _discover(self) -> dict[str, DiscoveredDriver]:
        eps = metadata.entry_points()
        group = eps.select(group=self._entry_point_group)
        discovered: dict[str, DiscoveredDriver] = {}
        for entry_point in sorted(group, key=lambda ep: ep.name):
            if not self._is_enabled(entry_point.name):
                LOG.debug("Skipping disabled driver", extra={"driver": entry_point.name})
                continue
            discovered[entry_point.name] = self._describe(entry_point.name, entry_point.load(), entry_point)
        for driver in self._builtin_drivers:
            token = driver.token
            if token in discovered or not self._is_enabled(token):
                continue
            entry_point = metadata.EntryPoint(
                name=token,
                value=f"{driver.__module__}:{driver.__qualname__}",
                group=self._entry_point_group,
            )
            discovered[token] = self._describe(token, driver, entry_point)
        LOG.debug("Discovered drivers", extra={"drivers": sorted(discovered)})
        return discovered

    @staticmethod
    def _describe(token: str, handler: object, entry_point: metadata.EntryPoint) -> DiscoveredDriver:
        missing: tuple[str, ...] = ()
        if inspect.isclass(handler) and issubclass(handler, ViewDriver):
            missing = missing_capabilities(handler)
            if missing:
                LOG.warning(
                    "Driver does not implement every capability",
                    extra={"driver": token, "missing": missing},
                )
        else:
            LOG.warning("Registered driver is not a ViewDriver subclass", extra={"driver": token})
        return DiscoveredDriver(token=token, handler=handler, entry_point=entry_point, missing=missing)


_default_registry: DriverRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> DriverRegistry:
    """Return the process-wide registry, built from the user config on first call."""

    global _default_registry
    with _default_lock:
        if _default_registry is None:
            from ..config import load_config

            _default_registry = DriverRegistry.from_settings(load_config())
        return _default_registry


__all__ = [
    "BUILTIN_DRIVERS",
    "DiscoveredDriver",
    "DriverRegistry",
    "ENTRY_POINT_GROUP",
    "default_registry",
]
