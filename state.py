"""State tracking and event logging for the airlock."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from panel import PanelUi

_LOGGER = logging.getLogger(__name__)


@dataclass
class AirlockState:
    """Current state of the airlock."""

    door_state: str = "closed"     # closed, opening, open, closing
    cycles: int = 0                # Completed door open cycles
    panels: dict[str, dict[str, bool]] = field(default_factory=dict)
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StateEvent:
    """A single state change event."""

    timestamp: str
    event_type: str          # door_state, locked, suspended
    old_value: str
    new_value: str
    source: str = "door"     # door, left, right

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EventLog:
    """In-memory log of the most recent state change events."""

    def __init__(self, max_memory_events: int = 500):
        self._max_memory = max_memory_events
        self._events: list[StateEvent] = []

    def add(self, event: StateEvent) -> None:
        self._events.append(event)
        if len(self._events) > self._max_memory:
            self._events = self._events[-self._max_memory:]

    def recent(self, count: int = 50) -> list[dict]:
        """Get the most recent events."""
        if count <= 0:
            return []
        return [e.to_dict() for e in self._events[-count:]]


class StateManager:
    """Manages the current state and tracks changes."""

    def __init__(self) -> None:
        self.state = AirlockState()
        self.event_log = EventLog()
        self._callbacks: list = []

    def register_callback(self, callback) -> None:
        """Register a callback for state changes."""
        self._callbacks.append(callback)

    def _notify(self, event: StateEvent) -> None:
        for cb in self._callbacks:
            try:
                cb(self.state, event)
            except Exception as e:
                _LOGGER.error("Error in state callback: %s", e)

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _record(self, event_type: str, old: str, new: str, source: str) -> None:
        self.state.last_updated = self._now()
        event = StateEvent(
            timestamp=self.state.last_updated,
            event_type=event_type,
            old_value=old,
            new_value=new,
            source=source,
        )
        self.event_log.add(event)
        self._notify(event)

    def update_door_state(self, new_state: str) -> bool:
        """Update door state, returns True if changed."""
        if new_state == self.state.door_state:
            return False
        old = self.state.door_state
        self.state.door_state = new_state
        if old == "closing" and new_state == "closed":
            self.state.cycles += 1
        self._record("door_state", old, new_state, "door")
        _LOGGER.debug("Door state: %s → %s", old, new_state)
        return True

    def track_panel(self, panel: PanelUi) -> None:
        """Follow a panel's locked and suspended flags."""
        self.state.panels[panel.name] = {
            "locked": panel.get_locked(),
            "suspended": panel.is_suspended(),
        }
        panel.register_change_callback(self._on_panel_change)

    def _on_panel_change(self, panel: PanelUi, flag: str, old: bool, new: bool) -> None:
        self.state.panels.setdefault(panel.name, {})[flag] = new
        self._record(flag, str(old).lower(), str(new).lower(), panel.name)
