"""Side controller of the airlock.

Each side owns a panel and, optionally, a lock authorization sensor. With a
sensor, an activation unlocks the side for a fixed time; when the sensor is
released and the time runs out the side locks again. Without a sensor the
side never changes its lock state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from config import SideConfig
from const import TRACE
from devices import DeviceRegistry, LockSensor
from panel import PanelUi
from scheduler import TaskScheduler, UiEvent

_LOGGER = logging.getLogger(__name__)


class NoLockTimer:
    """Lock timer of a side without a sensor."""

    countdown: float | None = None

    def update(self, delta_t: float, ui: PanelUi) -> None:
        pass


class SensorLockTimer:
    """Lock timer driven by a lock authorization sensor."""

    def __init__(self, sensor: LockSensor, unlock_duration: float, log: logging.Logger):
        self._sensor = sensor
        self._unlock_duration = unlock_duration
        self._log = log
        self.countdown = 0.0

    def update(self, delta_t: float, ui: PanelUi) -> None:
        if self._sensor.is_active():
            # Repeated activations do not refresh a running window
            if self.countdown <= 0:
                self._log.debug("Unlocking")
                self.countdown = self._unlock_duration
                ui.set_locked(False)
        elif self.countdown > 0:
            self._log.log(TRACE, "Lock timer decremented")
            self.countdown -= delta_t
        elif not ui.get_locked():
            self._log.debug("Locking")
            ui.set_locked(True)


class Side:
    """Controller of one side: lock timer plus panel."""

    def __init__(
        self,
        name: str,
        config: SideConfig,
        devices: DeviceRegistry,
        scheduler: TaskScheduler,
    ):
        self.name = name
        self._config = config
        self._log = _LOGGER.getChild(name)
        self._log.log(TRACE, "Side controller creation")

        lock = config.lock
        if lock.device is None:
            self._log.info("No lock")
            self._timer: NoLockTimer | SensorLockTimer = NoLockTimer()
        else:
            sensor = devices.sensor(lock.device, lock.device_side)
            self._timer = SensorLockTimer(sensor, lock.unlock_duration, self._log)

        self._ui = PanelUi(
            name,
            config.panel,
            devices.display(config.panel.device),
            scheduler,
            lock_level=lock.level,
        )

        self._log.log(TRACE, "Side controller created")

    @property
    def panel(self) -> PanelUi:
        return self._ui

    @property
    def has_lock(self) -> bool:
        return isinstance(self._timer, SensorLockTimer)

    @property
    def countdown(self) -> float | None:
        """Remaining unlocked time, None without a sensor."""
        return self._timer.countdown

    @property
    def locked(self) -> bool:
        return self._ui.get_locked()

    def register_open_callback(self, callback: Callable[[], None]) -> None:
        """Subscribe to open requests from this side's panel."""
        self._ui.register_open_callback(callback)

    def execute(
        self,
        runtime: Callable[[], Any] | None = None,
        on_event: Callable[[UiEvent], None] | None = None,
        before_draw: Callable[[], None] | None = None,
        after_draw: Callable[[], None] | None = None,
    ) -> None:
        """Begin interactive execution of the panel."""
        self._log.debug("Execution started")
        self._ui.execute(runtime, on_event, before_draw, after_draw)
        self._log.debug("Execution %s", "ended" if runtime is not None else "attached")

    def schedule(
        self,
        fn: Callable[[], Any],
        delay: float | None = None,
        propagate_errors: bool = False,
        debug: bool = False,
    ) -> None:
        """Schedule a task on this side's scheduler."""
        self._log.log(TRACE, "Task scheduled")
        self._ui.schedule(fn, delay, propagate_errors, debug)

    def update(self, delta_t: float) -> None:
        """Advance the lock timer by delta_t seconds."""
        self._log.log(TRACE, "Side update")
        self._timer.update(delta_t, self._ui)

    def is_suspended(self) -> bool:
        return self._ui.is_suspended()

    def suspend(self) -> None:
        self._log.debug("Side control suspended")
        self._ui.suspend()

    def resume(self) -> None:
        self._log.debug("Side control resumed")
        self._ui.resume()

    def get_status(self) -> dict:
        return {
            "has_lock": self.has_lock,
            "countdown": self.countdown,
            "locked": self.locked,
            "suspended": self.is_suspended(),
        }
