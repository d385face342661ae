"""Name resolution for device identifiers.

Symbolic device names in the configuration are translated to physical
handles once, at startup, before any device is constructed.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Protocol

from config import Config, PnsConfig
from const import TRACE
from exceptions import ResolutionFailure

_LOGGER = logging.getLogger(__name__)


class NameResolver(Protocol):
    """Name service client."""

    def resolve(self, symbolic_name: str) -> str | None:
        """Return the physical handle for a name, or None if unknown."""


class StaticNameResolver:
    """Resolves names from a fixed table."""

    def __init__(self, names: Mapping[str, str]):
        self._names = dict(names)

    @classmethod
    def from_config(cls, config: PnsConfig) -> StaticNameResolver:
        return cls(config.names)

    def resolve(self, symbolic_name: str) -> str | None:
        return self._names.get(symbolic_name)


def qualify(name: str, prefix: str | None) -> str:
    """Apply the configured prefix to a symbolic name."""
    if prefix:
        return f"{prefix}.{name}"
    return name


def resolve_names(config: Config, resolver: NameResolver) -> Config:
    """Return a new Config with every device name translated.

    A lock device that resolves to an empty handle is dropped, which leaves
    that side without a sensor.
    """
    _LOGGER.debug("Applying name resolution")
    prefix = config.pns.prefix

    def translate(name: str) -> str:
        symbolic_name = qualify(name, prefix)
        _LOGGER.log(TRACE, "Translating %s", symbolic_name)
        handle = resolver.resolve(symbolic_name)
        if handle is None:
            raise ResolutionFailure(f'Device name "{symbolic_name}" could not be resolved')
        _LOGGER.log(TRACE, "Got %s", handle)
        return handle

    door = dataclasses.replace(config.door, device=translate(config.door.device))

    sides = {}
    for name in ("left", "right"):
        side = config.side(name)
        lock = side.lock
        if lock.device is not None:
            lock = dataclasses.replace(lock, device=translate(lock.device) or None)
        panel = dataclasses.replace(side.panel, device=translate(side.panel.device))
        sides[name] = dataclasses.replace(side, lock=lock, panel=panel)

    _LOGGER.log(TRACE, "All names translated")
    return dataclasses.replace(config, door=door, **sides)
