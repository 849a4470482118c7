"""Loader arguments and configuration file helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .errors import UnrecognisedArguments

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "viewloader" / "config.toml"

LOADER_ARGUMENTS = (
    "dsn",
    "username",
    "password",
    "options",
    "namespace",
    "include",
    "exclude",
    "base_classes",
    "left_base_classes",
    "import_classes",
)

ARGUMENT_ALIASES: Mapping[str, str] = {
    "user": "username",
    "additional_classes": "import_classes",
    "additional_base_classes": "base_classes",
    "constraint": "include",
}

# Accepted for compatibility, no effect.
IGNORED_ARGUMENTS = frozenset({"debug", "relationships"})


def normalize_arguments(arguments: Mapping[str, Any]) -> dict[str, Any]:
    """Map aliases to canonical names and drop legacy no-op arguments.

    Raises :class:`UnrecognisedArguments` naming every key that is neither a
    loader argument, an alias nor an ignored legacy argument.
    """

    normalized: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in arguments.items():
        if key in IGNORED_ARGUMENTS:
            continue
        name = ARGUMENT_ALIASES.get(key, key)
        if name not in LOADER_ARGUMENTS:
            unknown.append(key)
            continue
        normalized[name] = value
    if unknown:
        raise UnrecognisedArguments(unknown)
    return normalized


class LoaderProfile(BaseModel):
    """Named loader arguments stored in config.toml."""

    name: str
    dsn: str | None = None
    username: str | None = None
    password: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    namespace: str | None = None
    include: str | None = None
    exclude: str | None = None
    base_classes: list[str] = Field(default_factory=list)
    left_base_classes: list[str] = Field(default_factory=list)
    import_classes: list[str] = Field(default_factory=list)

    def loader_arguments(self) -> dict[str, Any]:
        """Arguments for :class:`viewloader.ViewLoader`, unset values omitted."""

        data = self.model_dump(exclude={"name"})
        return {key: value for key, value in data.items() if value not in (None, [], {})}


class ViewLoaderSettings(BaseModel):
    """Shape of the configuration file."""

    drivers: dict[str, bool] = Field(default_factory=dict)
    profiles: list[LoaderProfile] = Field(default_factory=list)
    active_profile: str | None = None

    def driver_filters(self) -> tuple[set[str] | None, set[str]]:
        """Return allow/block lists for driver discovery."""

        allowed = {name for name, flag in self.drivers.items() if flag}
        disabled = {name for name, flag in self.drivers.items() if not flag}
        allowlist: set[str] | None = allowed or None
        return allowlist, disabled

    def is_driver_enabled(self, token: str) -> bool:
        allowlist, disabled = self.driver_filters()
        if allowlist is not None:
            return token in allowlist
        return token not in disabled

    def profile(self, name: str | None = None) -> LoaderProfile:
        """Return the named profile, or the active/first one."""

        target = name or self.active_profile
        if target is None:
            if not self.profiles:
                raise ValueError("No loader profiles configured.")
            return self.profiles[0]
        for profile in self.profiles:
            if profile.name == target:
                return profile
        raise ValueError(f"Profile '{target}' not found.")

    def with_profile(self, profile: LoaderProfile) -> ViewLoaderSettings:
        """Return a copy with ``profile`` added or replaced."""

        profiles = [entry for entry in self.profiles if entry.name != profile.name]
        profiles.append(profile)
        return self.model_copy(update={"profiles": profiles})

    def with_active_profile(self, name: str) -> ViewLoaderSettings:
        return self.model_copy(update={"active_profile": name})


def load_config() -> ViewLoaderSettings:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except (tomllib.TOMLDecodeError, OSError):
        return ViewLoaderSettings()
    return ViewLoaderSettings(**data)


def save_config(settings: ViewLoaderSettings) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    if settings.active_profile:
        lines.append(f"active_profile = {_toml_value(settings.active_profile)}")
    if settings.drivers:
        lines.append("")
        lines.append("[drivers]")
        for token in sorted(settings.drivers):
            flag = "true" if settings.drivers[token] else "false"
            lines.append(f"{token} = {flag}")
    for profile in settings.profiles:
        lines.append("")
        lines.append("[[profiles]]")
        lines.append(f"name = {_toml_value(profile.name)}")
        options: dict[str, Any] = {}
        for key, value in profile.loader_arguments().items():
            if key == "options":
                options = value
                continue
            lines.append(f"{key} = {_toml_value(value)}")
        if options:
            lines.append("")
            lines.append("[profiles.options]")
            for key in sorted(options):
                lines.append(f"{key} = {_toml_value(options[key])}")
    CONFIG_FILE.write_text("\n".join(lines).lstrip("\n") + "\n")


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    drivers = raw.get("drivers")
    if isinstance(drivers, dict):
        data["drivers"] = {str(token): bool(enabled) for token, enabled in drivers.items()}
    active_profile = raw.get("active_profile")
    if isinstance(active_profile, str):
        data["active_profile"] = active_profile
    profiles = raw.get("profiles")
    if isinstance(profiles, list):
        parsed_profiles: list[LoaderProfile] = []
        for profile in profiles:
            if not isinstance(profile, dict) or not isinstance(profile.get("name"), str):
                continue
            arguments = {key: value for key, value in profile.items() if key != "name"}
            try:
                normalized = normalize_arguments(arguments)
            except UnrecognisedArguments as exc:
                LOG.warning("Skipping profile with unrecognised arguments", extra={"profile": profile["name"]})
                LOG.debug(str(exc))
                continue
            try:
                parsed_profiles.append(LoaderProfile(name=profile["name"], **normalized))
            except ValidationError as exc:
                LOG.warning("Skipping profile with invalid values", extra={"profile": profile["name"]})
                LOG.debug(str(exc))
        data["profiles"] = parsed_profiles
    return data


__all__ = [
    "ARGUMENT_ALIASES",
    "CONFIG_FILE",
    "IGNORED_ARGUMENTS",
    "LOADER_ARGUMENTS",
    "LoaderProfile",
    "ViewLoaderSettings",
    "load_config",
    "normalize_arguments",
    "save_config",
]
