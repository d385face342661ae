import pytest

from config import PanelConfig, RoomInfo
from devices import SimulatedDisplay
from panel import BUTTON, PanelUi
from scheduler import UiEvent


@pytest.fixture
def panel(scheduler):
    config = PanelConfig(
        device="panel_left",
        room=RoomInfo(name="Lab", number=12, hazard="BIOHAZARD"),
    )
    return PanelUi("left", config, SimulatedDisplay("panel_left"), scheduler, lock_level=2)


@pytest.fixture
def clicks(panel):
    calls = []
    panel.register_open_callback(lambda: calls.append("open"))
    return calls


def click(panel):
    panel.handle_event(UiEvent(target=panel.name, element=BUTTON))


def test_initial_panel_is_open_for_input(panel):
    button = panel.elements[BUTTON]
    assert panel.get_locked() is False
    assert panel.is_suspended() is False
    assert button.reactive is True
    assert (button.fg, button.bg) == ("white", "green")
    assert panel.elements["locked"].visible is False


def test_room_information_and_lock_level(panel):
    assert panel.elements["room_number"].text == "12"
    assert panel.elements["room_name"].text == "Lab"
    assert panel.elements["room_hazard"].text == "BIOHAZARD"
    badge = panel.elements["lock_level"]
    assert badge.text == "2"
    assert (badge.bg, badge.fg) == ("orange", "white")


def test_panel_without_room_or_level(scheduler):
    panel = PanelUi("right", PanelConfig(device="p"), SimulatedDisplay("p"), scheduler)
    for name in ("room_number", "room_name", "room_hazard", "lock_level"):
        assert name not in panel.elements


def test_suspend_greys_out_button(panel, clicks):
    panel.suspend()
    button = panel.elements[BUTTON]
    assert panel.is_suspended() is True
    assert (button.fg, button.bg) == ("lightGray", "gray")
    assert button.reactive is False

    click(panel)
    assert clicks == []

    panel.resume()
    assert (button.fg, button.bg) == ("white", "green")
    click(panel)
    assert clicks == ["open"]


def test_suspend_is_idempotent(panel):
    changes = []
    panel.register_change_callback(lambda p, flag, old, new: changes.append((flag, new)))
    panel.suspend()
    panel.suspend()
    assert panel.is_suspended() is True
    assert changes == [("suspended", True)]

    panel.resume()
    assert panel.is_suspended() is False
    assert changes == [("suspended", True), ("suspended", False)]


def test_locked_shows_overlay_and_blocks_button(panel, clicks):
    panel.set_locked(True)
    assert panel.elements["locked"].visible is True
    assert panel.elements["lower_area_locked"].visible is True
    assert panel.elements[BUTTON].reactive is False

    click(panel)
    assert clicks == []


def test_locked_and_suspended_are_independent(panel):
    panel.suspend()
    assert panel.get_locked() is False

    panel.set_locked(True)
    panel.resume()
    assert panel.get_locked() is True
    assert panel.is_suspended() is False
    assert panel.elements[BUTTON].reactive is False


def test_events_for_other_elements_are_ignored(panel, clicks):
    panel.handle_event(UiEvent(target="left", element="room_name"))
    panel.handle_event(UiEvent(target="left", element="nope"))
    panel.handle_event(UiEvent(target="left", element=BUTTON, kind="drag"))
    assert clicks == []


def test_snapshot_lists_visible_elements_in_drawing_order(panel):
    panel.set_locked(True)
    snapshot = panel.snapshot()
    assert snapshot["locked"] is True
    assert snapshot["suspended"] is False
    names = [e["name"] for e in snapshot["elements"]]
    assert names[0] == "lower_area"
    assert names[-1] == "locked"
    orders = [e["graphic_order"] for e in snapshot["elements"]]
    assert orders == sorted(orders)


def test_execute_attaches_panel_to_scheduler(panel, scheduler):
    panel.execute()
    assert "left" in scheduler.get_status()["panels"]
