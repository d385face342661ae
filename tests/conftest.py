"""Shared fixtures for the airlock tests."""

import copy

import pytest

from config import Config, merge
from coordinator import Coordinator
from devices import SimulatedDeviceRegistry
from scheduler import TaskScheduler

BASE_CONFIG = {
    "door": {
        "device": "door",
        "device_side": "back",
        "keep_open_duration": 5,
        "transition_duration": 2,
    },
    "left": {
        "lock": {
            "device": "lock_left",
            "device_side": "top",
            "level": 3,
            "unlock_duration": 3,
        },
        "panel": {
            "device": "panel_left",
            "room": {"name": "Lab", "number": 12, "hazard": "BIOHAZARD"},
        },
    },
    "right": {
        "panel": {"device": "panel_right"},
    },
    "dashboard": {"enabled": False},
}


@pytest.fixture
def raw_config():
    """A deep copy of the base configuration mapping."""
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def make_config():
    """Build a Config from the base mapping with overrides merged in."""

    def _make(overrides=None):
        return Config.from_dict(merge(copy.deepcopy(BASE_CONFIG), overrides or {}))

    return _make


@pytest.fixture
def devices():
    return SimulatedDeviceRegistry()


@pytest.fixture
def scheduler():
    return TaskScheduler()


@pytest.fixture
def coordinator(make_config, devices, scheduler):
    return Coordinator(make_config(), devices, scheduler)
