"""Configuration for the airlock controller.

Configuration is layered: a default file shipped next to the code and an
override file installed on the device. The override is merged over the
default key by key, the result is validated and frozen into dataclasses.
Nothing mutates a Config after it is built.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import voluptuous as vol

from const import (
    CONFIG_FILE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_WEB_HOST,
    DEFAULT_WEB_PORT,
    MAX_DURATION,
)
from exceptions import ConfigMalformed, ConfigMissing

_LOGGER = logging.getLogger(__name__)

# Also rejects Infinity and NaN, which json accepts
SECONDS = vol.All(vol.Coerce(float), vol.Range(min=0, max=MAX_DURATION))
OPTIONAL_STR = vol.Any(None, str)


def _lock_complete(value: dict) -> dict:
    """A lock with a device needs its side and unlock duration."""
    if value.get("device"):
        if not value.get("device_side"):
            raise vol.Invalid("lock with a device needs device_side", path=["device_side"])
        if value.get("unlock_duration") is None:
            raise vol.Invalid(
                "lock with a device needs unlock_duration", path=["unlock_duration"]
            )
    return value


PNS_SCHEMA = vol.Schema({
    vol.Optional("enabled", default=False): bool,
    vol.Optional("prefix"): OPTIONAL_STR,
    vol.Optional("names", default={}): {str: str},
})

DOOR_SCHEMA = vol.Schema({
    vol.Required("device"): str,
    vol.Required("device_side"): str,
    vol.Required("keep_open_duration"): SECONDS,
    vol.Required("transition_duration"): SECONDS,
})

LOCK_SCHEMA = vol.All(
    vol.Schema({
        vol.Optional("device"): OPTIONAL_STR,
        vol.Optional("device_side"): OPTIONAL_STR,
        vol.Optional("level"): vol.Any(None, vol.All(int, vol.Range(min=1, max=5))),
        vol.Optional("unlock_duration"): vol.Any(None, SECONDS),
    }),
    _lock_complete,
)

ROOM_SCHEMA = vol.Schema({
    vol.Optional("name"): OPTIONAL_STR,
    vol.Optional("number"): vol.Any(None, int),
    vol.Optional("hazard"): OPTIONAL_STR,
})

PANEL_SCHEMA = vol.Schema({
    vol.Required("device"): str,
    vol.Optional("room", default={}): ROOM_SCHEMA,
})

SIDE_SCHEMA = vol.Schema({
    vol.Optional("lock", default={}): LOCK_SCHEMA,
    vol.Required("panel"): PANEL_SCHEMA,
})

DASHBOARD_SCHEMA = vol.Schema({
    vol.Optional("enabled", default=True): bool,
    vol.Optional("host", default=DEFAULT_WEB_HOST): str,
    vol.Optional("port", default=DEFAULT_WEB_PORT): vol.All(
        int, vol.Range(min=1, max=65535)
    ),
})

CONFIG_SCHEMA = vol.Schema({
    vol.Optional("pns", default={}): PNS_SCHEMA,
    vol.Required("door"): DOOR_SCHEMA,
    vol.Required("left"): SIDE_SCHEMA,
    vol.Required("right"): SIDE_SCHEMA,
    vol.Optional("dashboard", default={}): DASHBOARD_SCHEMA,
})


@dataclass(frozen=True)
class PnsConfig:
    """Name resolution configuration."""

    enabled: bool = False
    prefix: str | None = None
    names: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class DoorConfig:
    """Door actuator and its timing."""

    device: str
    device_side: str = ""
    keep_open_duration: float = 5.0   # How long the door stays open [s]
    transition_duration: float = 1.0  # How long one open/close motion takes [s]


@dataclass(frozen=True)
class LockConfig:
    """Lock authorization sensor. Without a device the side never locks."""

    device: str | None = None
    device_side: str | None = None
    level: int | None = None            # Lock level badge shown on the panel
    unlock_duration: float | None = None  # How long the side stays unlocked [s]


@dataclass(frozen=True)
class RoomInfo:
    """Room information shown on a panel."""

    name: str | None = None
    number: int | None = None
    hazard: str | None = None


@dataclass(frozen=True)
class PanelConfig:
    device: str
    room: RoomInfo = field(default_factory=RoomInfo)


@dataclass(frozen=True)
class SideConfig:
    panel: PanelConfig
    lock: LockConfig = field(default_factory=LockConfig)


@dataclass(frozen=True)
class DashboardConfig:
    enabled: bool = True
    host: str = DEFAULT_WEB_HOST
    port: int = DEFAULT_WEB_PORT


@dataclass(frozen=True)
class Config:
    """Main application configuration."""

    door: DoorConfig
    left: SideConfig
    right: SideConfig
    pns: PnsConfig = field(default_factory=PnsConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    def side(self, name: str) -> SideConfig:
        """Return the configuration of the left or right side."""
        if name == "left":
            return self.left
        if name == "right":
            return self.right
        raise KeyError(name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Validate a raw configuration mapping and freeze it."""
        try:
            data = CONFIG_SCHEMA(dict(data))
        except vol.Invalid as err:
            raise ConfigMalformed(f"Invalid configuration: {err}") from err

        pns = data["pns"]
        door = data["door"]
        return cls(
            pns=PnsConfig(
                enabled=pns["enabled"],
                prefix=pns.get("prefix"),
                names=MappingProxyType(dict(pns["names"])),
            ),
            door=DoorConfig(
                device=door["device"],
                device_side=door["device_side"],
                keep_open_duration=door["keep_open_duration"],
                transition_duration=door["transition_duration"],
            ),
            left=_side_from_dict(data["left"]),
            right=_side_from_dict(data["right"]),
            dashboard=DashboardConfig(**data["dashboard"]),
        )

    @classmethod
    def load(
        cls,
        default_file: str = DEFAULT_CONFIG_FILE,
        config_file: str = CONFIG_FILE,
    ) -> Config:
        """Load the default file, merge the override file over it, validate.

        A file that cannot be read is skipped with a warning. A file that
        cannot be parsed raises ConfigMalformed.
        """
        data: dict[str, Any] = {}
        for path in (default_file, config_file):
            try:
                layer = load_file(path)
            except ConfigMissing as err:
                _LOGGER.warning("%s", err)
                continue
            data = merge(data, layer)
            _LOGGER.debug("Loaded config file %s", path)
        return cls.from_dict(data)


def _side_from_dict(data: Mapping[str, Any]) -> SideConfig:
    lock = data["lock"]
    panel = data["panel"]
    room = panel["room"]
    return SideConfig(
        lock=LockConfig(
            device=lock.get("device") or None,
            device_side=lock.get("device_side"),
            level=lock.get("level"),
            unlock_duration=lock.get("unlock_duration"),
        ),
        panel=PanelConfig(
            device=panel["device"],
            room=RoomInfo(
                name=room.get("name"),
                number=room.get("number"),
                hazard=room.get("hazard"),
            ),
        ),
    )


def load_file(path: str) -> dict[str, Any]:
    """Read one JSON configuration file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as err:
        raise ConfigMissing(f'Config file "{path}" could not be read: {err}') from err
    except ValueError as err:
        # JSONDecodeError and UnicodeDecodeError
        raise ConfigMalformed(f'Config file "{path}" could not be parsed: {err}') from err
    if not isinstance(data, dict):
        raise ConfigMalformed(f'Config file "{path}" does not contain a mapping')
    return data


def merge(default: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge override over default, recursing into nested mappings.

    Neither argument is modified.
    """
    result = dict(default)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = merge(current, value)
        else:
            result[key] = value
    return result
