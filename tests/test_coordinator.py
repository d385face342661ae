import asyncio
import json
import time

import pytest

import coordinator as coordinator_module
from coordinator import Coordinator
from devices import DeviceRegistry, SimulatedDoor
from exceptions import ConfigMalformed, DeviceNotFound
from scheduler import UiEvent


@pytest.fixture
def door(coordinator, devices):
    return devices.get("door")


@pytest.fixture
def fast(make_config, devices, scheduler, monkeypatch):
    """Coordinator with short timings and a fast control loop."""
    monkeypatch.setattr(coordinator_module, "TICK_INTERVAL", 0.005)
    config = make_config({
        "door": {"transition_duration": 0.01, "keep_open_duration": 0.03},
    })
    return Coordinator(config, devices, scheduler)


@pytest.fixture
def recorder(monkeypatch):
    """Replace the coordinator's waits with a recorder that returns at once."""
    log = []

    async def fake_sleep(delay):
        log.append(("wait", delay))

    monkeypatch.setattr(coordinator_module.asyncio, "sleep", fake_sleep)
    return log


def test_construction(coordinator, door):
    assert isinstance(door, SimulatedDoor)
    assert coordinator.left.has_lock is True
    assert coordinator.right.has_lock is False
    assert coordinator.cycle_active is False
    assert coordinator.state.state.door_state == "closed"


def test_missing_door_is_fatal(make_config, scheduler):
    with pytest.raises(DeviceNotFound):
        Coordinator(make_config(), DeviceRegistry(), scheduler)


def test_from_files_loads_layered_config(tmp_path, raw_config, devices):
    default_file = tmp_path / "default.json"
    default_file.write_text(json.dumps(raw_config))
    config_file = tmp_path / "config.json"
    config_file.write_text('{"door": {"keep_open_duration": 9}}')

    coordinator = Coordinator.from_files(devices, str(default_file), str(config_file))
    assert coordinator.config.door.keep_open_duration == 9.0
    assert coordinator.config.door.transition_duration == 2.0


def test_from_files_malformed_is_fatal(tmp_path, devices):
    broken = tmp_path / "config.json"
    broken.write_text("not json")
    with pytest.raises(ConfigMalformed):
        Coordinator.from_files(devices, str(tmp_path / "absent.json"), str(broken))
    assert devices.items() == []


def test_initialize_runs_door_through_one_cycle(coordinator, door, monkeypatch):
    waits = []
    monkeypatch.setattr(coordinator_module.time, "sleep", waits.append)
    coordinator.initialize()
    assert door.commands == ["open", "close"]
    assert waits == [2.0, 2.0]


def test_update_runs_left_then_right(coordinator, monkeypatch):
    order = []
    monkeypatch.setattr(coordinator.left, "update", lambda dt: order.append(("left", dt)))
    monkeypatch.setattr(coordinator.right, "update", lambda dt: order.append(("right", dt)))
    coordinator.update(0.25)
    assert order == [("left", 0.25), ("right", 0.25)]


def test_open_sequence_order(coordinator, door, recorder, monkeypatch):
    monkeypatch.setattr(door, "open", lambda: recorder.append("open"))
    monkeypatch.setattr(door, "close", lambda: recorder.append("close"))
    for side in coordinator.sides:
        side.panel.register_change_callback(
            lambda panel, flag, old, new: recorder.append((flag, panel.name, new))
        )

    asyncio.run(coordinator._open_sequence())

    assert recorder == [
        ("suspended", "left", True),
        ("suspended", "right", True),
        "open",
        ("wait", 2.0),
        ("wait", 5.0),
        "close",
        ("wait", 2.0),
        ("suspended", "left", False),
        ("suspended", "right", False),
    ]
    waits = [entry[1] for entry in recorder if entry[0] == "wait"]
    assert sum(waits) >= 9


def test_open_sequence_reports_door_states(coordinator, recorder):
    asyncio.run(coordinator._open_sequence())
    events = coordinator.state.event_log.recent()
    door_states = [e["new_value"] for e in events if e["event_type"] == "door_state"]
    assert door_states == ["opening", "open", "closing", "closed"]
    assert coordinator.state.state.cycles == 1


def test_overlapping_requests_start_one_cycle(coordinator, scheduler):
    assert coordinator.request_open() is True
    assert coordinator.request_open() is False
    assert coordinator.cycle_active is True
    assert scheduler.get_status()["pending"] == 1


def test_failed_sequence_still_resumes(coordinator, door, recorder, monkeypatch):
    def jammed():
        raise OSError("jammed")

    monkeypatch.setattr(door, "open", jammed)
    coordinator.request_open()
    with pytest.raises(OSError):
        asyncio.run(coordinator._open_sequence())
    assert coordinator.cycle_active is False
    assert not any(side.is_suspended() for side in coordinator.sides)


def test_stop_ends_main_loop(fast, scheduler, monkeypatch):
    ticks = []
    monkeypatch.setattr(fast, "update", ticks.append)

    async def stop_later():
        await asyncio.sleep(0.05)
        fast.stop()

    scheduler.schedule(stop_later)
    scheduler.run(fast._main_loop)
    assert len(ticks) >= 2
    assert all(dt >= 0 for dt in ticks)


def test_run_bootstraps_both_sides_and_extra_tasks(fast, scheduler, devices):
    calls = []

    def extra():
        calls.append("extra")
        fast.stop()

    fast.run(extra)

    assert calls == ["extra"]
    assert scheduler.get_status()["panels"] == ["left", "right"]
    # Calibration happened before the loop
    assert devices.get("door").commands[:2] == ["open", "close"]


def test_full_cycle_on_shared_loop(fast, scheduler, devices, monkeypatch):
    door = devices.get("door")
    ticks = []
    timeline = {}
    original_update = fast.update

    def counting_update(delta_t):
        ticks.append(delta_t)
        original_update(delta_t)

    monkeypatch.setattr(fast, "update", counting_update)

    def on_change(panel, flag, old, new):
        if panel.name == "right" and flag == "suspended":
            timeline["resumed" if not new else "suspended"] = time.monotonic()

    fast.right.panel.register_change_callback(on_change)

    async def scenario():
        await asyncio.sleep(0.02)
        # Left has a lock sensor that never fired, so it is locked by now
        assert fast.left.locked is True
        scheduler.post_event(UiEvent(target="left", element="button"))
        await asyncio.sleep(0.02)
        assert fast.cycle_active is False

        scheduler.post_event(UiEvent(target="right", element="button"))
        await asyncio.sleep(0.005)
        assert fast.cycle_active is True
        ticks_at_start = len(ticks)
        # A click on the suspended panel is ignored
        scheduler.post_event(UiEvent(target="left", element="button"))
        while fast.cycle_active:
            await asyncio.sleep(0.005)
        assert len(ticks) > ticks_at_start
        fast.stop()

    scheduler.schedule(scenario, propagate_errors=True)
    fast.run()

    assert door.commands == ["open", "close", "open", "close"]
    assert timeline["resumed"] - timeline["suspended"] >= 0.04
    assert not fast.right.is_suspended()


def test_run_again_after_stop(fast, devices, monkeypatch):
    ticks = []
    monkeypatch.setattr(fast, "update", ticks.append)

    async def stop_later():
        await asyncio.sleep(0.03)
        fast.stop()

    fast.run(stop_later)
    first_run_ticks = len(ticks)
    assert first_run_ticks >= 2

    fast.run(stop_later)
    assert len(ticks) - first_run_ticks >= 2
    assert devices.get("door").commands == ["open", "close", "open", "close"]
