"""Device abstraction for the airlock.

Sensors, door actuators and panel displays are looked up by name in a
DeviceRegistry. Hardware backends register their peripherals; the
SimulatedDeviceRegistry creates in-memory peripherals on demand so the
controller can run without hardware.
"""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar, runtime_checkable

from exceptions import DeviceNotFound

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class LockSensor(Protocol):
    """Lock authorization input."""

    def is_active(self) -> bool:
        """Return True while an open authorization is being granted."""


@runtime_checkable
class DoorActuator(Protocol):
    """Door motor. Commands are fire-and-forget, no completion signal."""

    def open(self) -> None:
        """Start opening the door."""

    def close(self) -> None:
        """Start closing the door."""


@runtime_checkable
class Display(Protocol):
    """Panel display surface."""

    name: str
    width: int
    height: int


class SimulatedSensor:
    """In-memory lock sensor."""

    def __init__(self, name: str, side: str | None = None, active: bool = False):
        self.name = name
        self.side = side
        self.active = active

    def is_active(self) -> bool:
        return self.active

    def set_active(self, active: bool) -> None:
        if active != self.active:
            _LOGGER.info("Sensor %s %s", self.name, "active" if active else "inactive")
        self.active = active


class SimulatedDoor:
    """In-memory door actuator recording the commands it receives."""

    def __init__(self, name: str, side: str | None = None):
        self.name = name
        self.side = side
        self.is_open = False
        self.commands: list[str] = []

    def open(self) -> None:
        _LOGGER.debug("Door %s: open", self.name)
        self.is_open = True
        self.commands.append("open")

    def close(self) -> None:
        _LOGGER.debug("Door %s: close", self.name)
        self.is_open = False
        self.commands.append("close")


class SimulatedDisplay:
    """In-memory panel display."""

    def __init__(self, name: str, width: int = 15, height: int = 10):
        self.name = name
        self.width = width
        self.height = height


class DeviceRegistry:
    """Peripherals attached to the controller, by name."""

    def __init__(self) -> None:
        self._devices: dict[str, object] = {}

    def add(self, name: str, device: object) -> None:
        """Attach a peripheral under a name."""
        self._devices[name] = device

    def get(self, name: str) -> object | None:
        return self._devices.get(name)

    def items(self) -> list[tuple[str, object]]:
        return list(self._devices.items())

    def _create(self, name: str, kind: type, side: str | None) -> object | None:
        """Create a missing peripheral. Hardware registries create nothing."""
        return None

    def _lookup(self, name: str | None, kind: type[T], side: str | None, what: str) -> T:
        if not name:
            raise DeviceNotFound(f"No {what} name given")
        device = self._devices.get(name)
        if device is None:
            device = self._create(name, kind, side)
            if device is not None:
                self.add(name, device)
        if device is None:
            raise DeviceNotFound(f'{what.capitalize()} "{name}" not found')
        if not isinstance(device, kind):
            raise DeviceNotFound(f'Device "{name}" is not a {what}')
        return device

    def sensor(self, name: str | None, side: str | None = None) -> LockSensor:
        return self._lookup(name, LockSensor, side, "lock sensor")

    def door(self, name: str | None, side: str | None = None) -> DoorActuator:
        return self._lookup(name, DoorActuator, side, "door controller")

    def display(self, name: str | None) -> Display:
        return self._lookup(name, Display, None, "display")


class SimulatedDeviceRegistry(DeviceRegistry):
    """Registry that fabricates simulated peripherals on first lookup."""

    _FACTORIES = {
        LockSensor: SimulatedSensor,
        DoorActuator: SimulatedDoor,
    }

    def _create(self, name: str, kind: type, side: str | None) -> object | None:
        if kind is Display:
            _LOGGER.debug("Creating simulated display %s", name)
            return SimulatedDisplay(name)
        factory = self._FACTORIES.get(kind)
        if factory is None:
            return None
        _LOGGER.debug("Creating simulated %s %s", factory.__name__, name)
        return factory(name, side)

    def simulated_sensors(self) -> dict[str, SimulatedSensor]:
        """Simulated sensors, for manual control from the dashboard."""
        return {
            name: device
            for name, device in self.items()
            if isinstance(device, SimulatedSensor)
        }
