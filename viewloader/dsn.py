"""Connection string parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from .errors import InvalidDsn, NoDsn

_DSN_PATTERN = re.compile(r"^(?P<scheme>dbi):(?P<driver>\w+)(?::(?P<params>.*))?$", re.DOTALL)

_DATABASE_KEYS = ("dbname", "database", "db")


@dataclass(frozen=True, slots=True)
class DsnParts:
    """A dsn split into the pieces drivers care about."""

    dsn: str
    scheme: str
    driver: str
    params: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def database(self) -> str | None:
        for key in _DATABASE_KEYS:
            value = self.attributes.get(key)
            if value:
                return value
        return None

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.attributes.get(key, default)


def parse_dsn(dsn: str | None) -> DsnParts:
    """Split ``dbi:<driver>:<params>`` into its parts.

    Parsing is strict: the scheme must be ``dbi`` and the driver token must be
    a run of word characters, otherwise :class:`InvalidDsn` is raised.
    """

    if not dsn:
        raise NoDsn()
    if not isinstance(dsn, str):
        raise InvalidDsn(repr(dsn))
    match = _DSN_PATTERN.match(dsn)
    if match is None:
        raise InvalidDsn(dsn)
    params = match.group("params") or ""
    return DsnParts(
        dsn=dsn,
        scheme=match.group("scheme"),
        driver=match.group("driver"),
        params=params,
        attributes=parse_attributes(params),
    )


def driver_token(dsn: str | None) -> str:
    """Return only the driver token of a dsn."""

    return parse_dsn(dsn).driver


def parse_attributes(params: str) -> dict[str, str]:
    """Parse ``key=value;key=value`` pairs; a bare value names the database."""

    attributes: dict[str, str] = {}
    for chunk in params.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, sep, value = chunk.partition("=")
        if sep:
            attributes[key.strip()] = value.strip()
        else:
            attributes.setdefault("dbname", chunk)
    return attributes


__all__ = ["DsnParts", "driver_token", "parse_attributes", "parse_dsn"]
