"""Load database views as read-only record classes."""

from __future__ import annotations

__version__ = "0.1.0"

from .cache import CLASS_CACHE, ClassCache
from .errors import (
    ConnectionFailed,
    HandlerNotASubclass,
    InvalidDsn,
    InvalidPatternType,
    MethodNotOverridden,
    NoColumnsWarning,
    NoDriverLoaded,
    NoDriverToken,
    NoDsn,
    NoHandlerForDriver,
    NoHandlerLoaded,
    NoImportFunctionWarning,
    ReadOnlyError,
    UnrecognisedArguments,
    ViewLoaderError,
    ViewLoaderWarning,
)
from .loader import ViewLoader
from .records import ViewRecord
from .synthesis import GeneratedView, view_to_class

__all__ = [
    "CLASS_CACHE",
    "ClassCache",
    "ConnectionFailed",
    "GeneratedView",
    "HandlerNotASubclass",
    "InvalidDsn",
    "InvalidPatternType",
    "MethodNotOverridden",
    "NoColumnsWarning",
    "NoDriverLoaded",
    "NoDriverToken",
    "NoDsn",
    "NoHandlerForDriver",
    "NoHandlerLoaded",
    "NoImportFunctionWarning",
    "ReadOnlyError",
    "UnrecognisedArguments",
    "ViewLoader",
    "ViewLoaderError",
    "ViewLoaderWarning",
    "ViewRecord",
    "__version__",
    "view_to_class",
]
