"""Panel UI for one side of the airlock.

The panel is a small declarative scene of rectangles, text and one OPEN
button, drawn on a Display. Two flags drive its appearance: locked shows the
red LOCKED overlay, suspended greys out the button. Either one makes the
button ignore clicks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from config import PanelConfig
from const import (
    COLOR_BLACK,
    COLOR_GRAY,
    COLOR_GREEN,
    COLOR_LIGHT_GRAY,
    COLOR_RED,
    COLOR_WHITE,
    COLOR_YELLOW,
    LOCK_LEVEL_COLORS,
)
from devices import Display
from scheduler import TaskScheduler, UiEvent

_LOGGER = logging.getLogger(__name__)

BUTTON = "button"


@dataclass
class Element:
    """One visual element of a panel."""

    name: str
    kind: str                 # rectangle, text or button
    x: int
    y: int
    width: int = 1
    height: int = 1
    text: str = ""
    fg: str | None = None
    bg: str | None = None
    centered: bool = False
    visible: bool = True
    reactive: bool = False
    graphic_order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PanelUi:
    """Panel scene plus its locked and suspended state."""

    def __init__(
        self,
        name: str,
        config: PanelConfig,
        display: Display,
        scheduler: TaskScheduler,
        lock_level: int | None = None,
    ):
        self.name = name
        self._display = display
        self._scheduler = scheduler
        self._locked = False
        self._suspended = False
        self._open_callbacks: list[Callable[[], None]] = []
        self._change_callbacks: list[Callable[[PanelUi, str, bool, bool], None]] = []
        self.elements: dict[str, Element] = {}
        self._init_ui(config, lock_level)

    def register_open_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback for OPEN button clicks."""
        self._open_callbacks.append(callback)

    def register_change_callback(
        self, callback: Callable[[PanelUi, str, bool, bool], None]
    ) -> None:
        """Register a callback called with (panel, flag, old, new) on changes."""
        self._change_callbacks.append(callback)

    def is_suspended(self) -> bool:
        return self._suspended

    def suspend(self) -> None:
        self._set_flag("suspended", True)

    def resume(self) -> None:
        self._set_flag("suspended", False)

    def get_locked(self) -> bool:
        return self._locked

    def set_locked(self, locked: bool) -> None:
        self._set_flag("locked", locked)

    def execute(
        self,
        runtime: Callable[[], Any] | None = None,
        on_event: Callable[[UiEvent], None] | None = None,
        before_draw: Callable[[], None] | None = None,
        after_draw: Callable[[], None] | None = None,
    ) -> None:
        """Start taking input. With a runtime, also run the event loop.

        Without a runtime the panel joins a loop that is already running.
        """
        self._scheduler.attach(self.name, self.handle_event)
        if runtime is not None:
            self._scheduler.run(runtime, on_event, before_draw, after_draw)

    def schedule(
        self,
        fn: Callable[[], Any],
        delay: float | None = None,
        propagate_errors: bool = False,
        debug: bool = False,
    ) -> None:
        self._scheduler.schedule(fn, delay, propagate_errors, debug)

    def handle_event(self, event: UiEvent) -> None:
        """Dispatch a UI event to the element it targets."""
        element = self.elements.get(event.element)
        if element is None or event.kind != "click":
            _LOGGER.debug("Panel %s ignored %s on %s", self.name, event.kind, event.element)
            return
        if not (element.visible and element.reactive):
            _LOGGER.debug("Panel %s: %s is not reactive", self.name, element.name)
            return
        if element.name == BUTTON:
            for cb in self._open_callbacks:
                cb()

    def snapshot(self) -> dict[str, Any]:
        """Current state and visible elements, in drawing order."""
        visible = sorted(
            (e for e in self.elements.values() if e.visible),
            key=lambda e: e.graphic_order,
        )
        return {
            "name": self.name,
            "display": self._display.name,
            "width": self._display.width,
            "height": self._display.height,
            "locked": self._locked,
            "suspended": self._suspended,
            "elements": [e.to_dict() for e in visible],
        }

    def _set_flag(self, flag: str, value: bool) -> None:
        attr = f"_{flag}"
        old = getattr(self, attr)
        setattr(self, attr, value)
        self._update_ui()
        if old != value:
            for cb in self._change_callbacks:
                try:
                    cb(self, flag, old, value)
                except Exception as e:
                    _LOGGER.error("Error in panel callback: %s", e)

    def _add(self, element: Element) -> None:
        self.elements[element.name] = element

    def _init_ui(self, config: PanelConfig, lock_level: int | None) -> None:
        width = self._display.width
        height = self._display.height
        room = config.room

        self._add(Element("upper_area", "rectangle", 1, 1, width, 3, bg=COLOR_WHITE))
        self._add(Element(
            "lower_area", "rectangle", 1, 4, width, height - 3,
            bg=COLOR_YELLOW, graphic_order=-1,
        ))

        if room.number is not None:
            self._add(Element(
                "room_number", "text", 1, 1, text=str(room.number), fg=COLOR_GRAY,
            ))
        if room.name:
            self._add(Element(
                "room_name", "text", 1, 2, width, 1,
                text=room.name, fg=COLOR_BLACK, centered=True,
            ))
        if room.hazard:
            self._add(Element(
                "room_hazard", "text", 1, 3, width, 1,
                text=room.hazard, fg=COLOR_RED, centered=True,
            ))
        if lock_level is not None:
            bg, fg = LOCK_LEVEL_COLORS[lock_level]
            self._add(Element(
                "lock_level", "text", width, 1, text=str(lock_level), fg=fg, bg=bg,
            ))

        self._add(Element(
            BUTTON, "button", 3, 5, width - 4, height - 5,
            text="OPEN", fg=COLOR_WHITE, bg=COLOR_GREEN, centered=True, reactive=True,
        ))
        self._add(Element(
            "lower_area_locked", "rectangle", 1, 4, width, height - 3,
            bg=COLOR_RED, visible=False, graphic_order=1,
        ))
        self._add(Element(
            "locked", "text", 1, height, width, 1,
            text="LOCKED", fg=COLOR_WHITE, centered=True, visible=False, graphic_order=2,
        ))

        self._update_ui()

    def _update_ui(self) -> None:
        button = self.elements[BUTTON]
        if self._suspended:
            button.fg, button.bg = COLOR_LIGHT_GRAY, COLOR_GRAY
        else:
            button.fg, button.bg = COLOR_WHITE, COLOR_GREEN
        button.reactive = not (self._suspended or self._locked)

        self.elements["lower_area_locked"].visible = self._locked
        self.elements["locked"].visible = self._locked
