"""Airlock coordinator.

Owns the door actuator and both sides, runs the 4 Hz control loop and the
door open sequence. All of it runs on the scheduler shared with the panels.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from config import Config
from const import CONFIG_FILE, DEFAULT_CONFIG_FILE, TICK_INTERVAL, TRACE
from devices import DeviceRegistry
from pns import NameResolver, StaticNameResolver, resolve_names
from scheduler import TaskScheduler
from side import Side
from state import StateManager

_LOGGER = logging.getLogger(__name__)


class Coordinator:
    """Coordinates the door with the left and right side controllers."""

    def __init__(
        self,
        config: Config,
        devices: DeviceRegistry,
        scheduler: TaskScheduler | None = None,
        resolver: NameResolver | None = None,
    ):
        _LOGGER.log(TRACE, "Creating new airlock")

        if config.pns.enabled:
            _LOGGER.debug("Name resolution enabled")
            config = resolve_names(
                config, resolver or StaticNameResolver.from_config(config.pns)
            )

        self._config = config
        self._scheduler = scheduler or TaskScheduler()
        self.state = StateManager()
        self._terminate = False
        self._cycle_active = False

        _LOGGER.log(TRACE, "Device initialization started")
        self._door = devices.door(config.door.device, config.door.device_side)
        self._left = Side("left", config.left, devices, self._scheduler)
        self._right = Side("right", config.right, devices, self._scheduler)
        for side in self.sides:
            side.register_open_callback(self.request_open)
            self.state.track_panel(side.panel)
        _LOGGER.log(TRACE, "Airlock created")

    @classmethod
    def from_files(
        cls,
        devices: DeviceRegistry,
        default_file: str = DEFAULT_CONFIG_FILE,
        config_file: str = CONFIG_FILE,
        **kwargs: Any,
    ) -> Coordinator:
        """Load the layered configuration and build the coordinator."""
        return cls(Config.load(default_file, config_file), devices, **kwargs)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def scheduler(self) -> TaskScheduler:
        return self._scheduler

    @property
    def left(self) -> Side:
        return self._left

    @property
    def right(self) -> Side:
        return self._right

    @property
    def sides(self) -> tuple[Side, Side]:
        return (self._left, self._right)

    @property
    def cycle_active(self) -> bool:
        """True while a door cycle is queued or running."""
        return self._cycle_active

    def initialize(self) -> None:
        """Run the door through one open/close motion to reset it."""
        _LOGGER.debug("Door initialization sequence")
        transition = self._config.door.transition_duration
        self._door.open()
        time.sleep(transition)
        self._door.close()
        time.sleep(transition)
        _LOGGER.log(TRACE, "Door initialization sequence complete")

    def run(self, *tasks: Callable[[], Any]) -> None:
        """Calibrate the door and run until stopped.

        Extra tasks are scheduled on the shared event loop before it starts.
        """
        _LOGGER.info("Starting airlock")
        self._terminate = False
        self.initialize()

        self._left.schedule(self._right.execute)
        for task in tasks:
            self._left.schedule(task)

        self._left.execute(runtime=self._main_loop)
        _LOGGER.info("Airlock stopped")

    def stop(self) -> None:
        """Ask the control loop to end after the current tick."""
        _LOGGER.debug("Termination requested")
        self._terminate = True

    async def _main_loop(self) -> None:
        last_clock = time.monotonic()
        _LOGGER.log(TRACE, "Main loop started @ %f", last_clock)

        while not self._terminate:
            clock = time.monotonic()
            _LOGGER.log(TRACE, "Tick @ %f", clock)
            self.update(clock - last_clock)
            last_clock = clock
            await asyncio.sleep(TICK_INTERVAL)

        _LOGGER.log(TRACE, "Main loop ended @ %f", time.monotonic())

    def update(self, delta_t: float) -> None:
        """Advance both sides by delta_t seconds, left first."""
        _LOGGER.log(TRACE, "Airlock update with delta T %f", delta_t)
        self._left.update(delta_t)
        self._right.update(delta_t)

    def request_open(self) -> bool:
        """Queue a door open cycle.

        Returns False when a cycle is already queued or running; the request
        is dropped in that case.
        """
        if self._cycle_active:
            _LOGGER.debug("Open request ignored, door cycle in progress")
            return False
        _LOGGER.debug("Open requested")
        self._cycle_active = True
        self._left.schedule(self._open_sequence)
        return True

    async def _open_sequence(self) -> None:
        door = self._config.door
        try:
            _LOGGER.log(TRACE, "Suspend all")
            for side in self.sides:
                side.suspend()

            _LOGGER.info("Door open procedure running")

            _LOGGER.debug("Opening door")
            self.state.update_door_state("opening")
            self._door.open()
            await asyncio.sleep(door.transition_duration)

            _LOGGER.debug("Door open")
            self.state.update_door_state("open")
            await asyncio.sleep(door.keep_open_duration)

            _LOGGER.debug("Closing door")
            self.state.update_door_state("closing")
            self._door.close()
            await asyncio.sleep(door.transition_duration)

            _LOGGER.info("Door closed")
            self.state.update_door_state("closed")
        finally:
            _LOGGER.log(TRACE, "Resume all")
            for side in self.sides:
                side.resume()
            self._cycle_active = False

    def get_status(self) -> dict:
        """Get coordinator status for diagnostics."""
        return {
            "door": self.state.state.door_state,
            "cycle_active": self._cycle_active,
            "terminating": self._terminate,
            "sides": {side.name: side.get_status() for side in self.sides},
        }
