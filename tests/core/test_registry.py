"""Tests for the DeviceRegistry."""

import pytest

from home_automation.core.bus import STATE_CHANGED, EventBus
from home_automation.core.devices import DeviceType
from home_automation.core.errors import InvalidAttributeError, UnknownDeviceError
from home_automation.core.registry import DeviceRegistry


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def registry(bus):
    registry = DeviceRegistry(bus)
    registry.add("Living Room Light", DeviceType.LIGHT)
    registry.add("Bedroom Thermostat", "Thermostat")
    return registry


class TestDeviceManagement:
    """Tests for adding, listing and removing devices."""

    def test_list_preserves_insertion_order(self, registry):
        assert [d.name for d in registry.list()] == ["Living Room Light", "Bedroom Thermostat"]

    def test_duplicate_name_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.add("Living Room Light", DeviceType.SWITCH)

    def test_empty_name_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.add("  ", DeviceType.SWITCH)

    def test_remove(self, registry):
        registry.remove("Living Room Light")
        assert not registry.has("Living Room Light")
        with pytest.raises(UnknownDeviceError):
            registry.remove("Living Room Light")

    def test_get_returns_snapshot(self, registry):
        device = registry.get("Living Room Light")
        device.attributes["power"] = True
        assert registry.get_value("Living Room Light", "power") is False

    def test_unknown_device(self, registry):
        with pytest.raises(UnknownDeviceError) as exc:
            registry.get("Garage Door")
        assert exc.value.device == "Garage Door"

    def test_unknown_attribute(self, registry):
        with pytest.raises(InvalidAttributeError):
            registry.get_value("Living Room Light", "temperature")


class TestWrites:
    """Tests for set() and StateChanged publication."""

    def test_set_publishes_state_changed(self, registry, bus):
        received = []
        bus.subscribe(received.append)

        old, new = registry.set("Living Room Light", "power", True, cascade_id="c1", depth=2)
        bus.pump()

        assert old is False
        assert new is True
        assert len(received) == 1
        event = received[0]
        assert event.type == STATE_CHANGED
        assert event.device == "Living Room Light"
        assert event.payload == {"attribute": "power", "old": False, "new": True}
        assert event.cascade_id == "c1"
        assert event.depth == 2

    def test_no_change_no_event(self, registry, bus):
        received = []
        bus.subscribe(received.append)

        registry.set("Living Room Light", "power", False)
        bus.pump()

        assert received == []

    def test_set_clamps(self, registry):
        registry.set("Bedroom Thermostat", "temperature", 150)
        assert registry.get_value("Bedroom Thermostat", "temperature") == 80

    def test_rejected_write_leaves_state_unchanged(self, registry, bus):
        received = []
        bus.subscribe(received.append)

        with pytest.raises(InvalidAttributeError):
            registry.set("Living Room Light", "power", "yes")
        bus.pump()

        assert registry.get_value("Living Room Light", "power") is False
        assert received == []

    def test_validate_does_not_write(self, registry):
        assert registry.validate("Bedroom Thermostat", "temperature", 55) == 60
        assert registry.get_value("Bedroom Thermostat", "temperature") == 70
