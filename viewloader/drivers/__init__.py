"""Database drivers and the registry that finds them."""

from .base import CAPABILITIES, InspectorDriver, ViewDriver, missing_capabilities
from .postgres import PgDriver, PgViewRecord
from .registry import BUILTIN_DRIVERS, DiscoveredDriver, DriverRegistry, ENTRY_POINT_GROUP, default_registry
from .sqlite import SQLiteDriver, SQLiteViewRecord

__all__ = [
    "BUILTIN_DRIVERS",
    "CAPABILITIES",
    "DiscoveredDriver",
    "DriverRegistry",
    "ENTRY_POINT_GROUP",
    "InspectorDriver",
    "PgDriver",
    "PgViewRecord",
    "SQLiteDriver",
    "SQLiteViewRecord",
    "ViewDriver",
    "default_registry",
    "missing_capabilities",
]
