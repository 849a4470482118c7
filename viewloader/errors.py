"""Errors and warnings raised by the view loader."""

from __future__ import annotations

from typing import Iterable


class ViewLoaderError(RuntimeError):
    """Base error for view loader failures."""


class UnrecognisedArguments(ViewLoaderError, TypeError):
    """Raised when the loader is constructed with unknown arguments."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = tuple(sorted(keys))
        extra = ", ".join(f"'{key}'" for key in self.keys)
        super().__init__(f"Unrecognised arguments in new: {extra}")


class NoDsn(ViewLoaderError, ValueError):
    """Raised when a dsn operation receives an empty value."""

    def __init__(self) -> None:
        super().__init__("No dsn given")


class InvalidDsn(ViewLoaderError, ValueError):
    """Raised when no driver token can be parsed out of a dsn."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        super().__init__(f"Can't parse a driver from dsn '{dsn}'")


NoDriverToken = InvalidDsn


class NoHandlerForDriver(ViewLoaderError, LookupError):
    """Raised when no driver is registered for a token."""

    def __init__(self, token: str, dsn: str) -> None:
        self.token = token
        self.dsn = dsn
        super().__init__(f"No handler for driver {token}, from dsn '{dsn}'")


class HandlerNotASubclass(ViewLoaderError, TypeError):
    """Raised when a registered driver is not a ViewDriver subclass."""

    def __init__(self, handler: object) -> None:
        self.handler = handler
        name = getattr(handler, "__qualname__", repr(handler))
        super().__init__(f"{name} is not a ViewDriver subclass")


class NoHandlerLoaded(ViewLoaderError):
    """Raised when a driver operation is used before a dsn is set."""

    def __init__(self) -> None:
        super().__init__("No handler loaded, try setting a dsn first")


NoDriverLoaded = NoHandlerLoaded


class MethodNotOverridden(ViewLoaderError, NotImplementedError):
    """Raised when a bound driver does not implement a capability."""

    def __init__(self, method: str, handler: object) -> None:
        self.method = method
        self.handler = handler
        name = getattr(handler, "__qualname__", type(handler).__qualname__)
        super().__init__(f"{method} not overridden by {name}")


class ConnectionFailed(ViewLoaderError):
    """Raised when the database connection cannot be established."""

    def __init__(self, backend_error: BaseException | str) -> None:
        self.backend_error = backend_error
        super().__init__(f"Couldn't connect to database, {backend_error}")


class InvalidPatternType(ViewLoaderError, TypeError):
    """Raised when include/exclude receive something other than text or a pattern."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Regexp or string required, got {type(value).__name__}")


class ReadOnlyError(ViewLoaderError):
    """Raised when a write is attempted on a read-only record class."""

    def __init__(self, record_class: type, operation: str) -> None:
        self.record_class = record_class
        self.operation = operation
        super().__init__(f"{record_class.__qualname__} is read-only, can't {operation}")


class ViewLoaderWarning(UserWarning):
    """Base category for non-fatal loader diagnostics."""


class NoColumnsWarning(ViewLoaderWarning):
    """Emitted when a view has no columns and is skipped."""

    def __init__(self, view: str) -> None:
        self.view = view
        super().__init__(f"No columns found in {view}, skipping")


class NoImportFunctionWarning(ViewLoaderWarning):
    """Emitted when an import entry can neither export nor be imported."""

    def __init__(self, module: object) -> None:
        self.module = module
        super().__init__(f"{module!r} has no export function and is not a module, skipping")


__all__ = [
    "ConnectionFailed",
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
    "ViewLoaderError",
    "ViewLoaderWarning",
]
