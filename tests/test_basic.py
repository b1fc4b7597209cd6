"""
Basic smoke tests for home-automation core components.
"""

from home_automation import DeviceRegistry, DeviceType, Event, EventBus, SmartHome


def test_device_registry_add():
    """Test DeviceRegistry device creation."""
    registry = DeviceRegistry()

    light = registry.add("Kitchen Light", DeviceType.LIGHT)
    assert light.name == "Kitchen Light"
    assert light.type == DeviceType.LIGHT
    assert light.attributes == {"power": False, "brightness": 50}

    assert registry.get("Kitchen Light") == light


def test_event_creation():
    """Test Event dataclass creation."""
    event = Event(
        type="device.state_changed",
        source="registry",
        device="Kitchen Light",
        payload={"attribute": "power", "old": False, "new": True},
    )
    assert event.type == "device.state_changed"
    assert event.device == "Kitchen Light"
    assert event.payload["new"] is True
    assert event.depth == 0
    assert event.cascade_id


def test_event_bus_basic():
    """Test basic EventBus publish/subscribe."""
    bus = EventBus()
    received_events = []

    def handler(event):
        received_events.append(event)

    bus.subscribe(handler)

    event = Event(type="test", source="test")
    bus.publish(event)
    bus.pump()

    assert len(received_events) == 1
    assert received_events[0] == event


def test_smart_home_wiring():
    """Test SmartHome builds with stock devices and no tasks or rules."""
    home = SmartHome()
    assert len(home.list_devices()) == 3
    assert home.list_tasks() == []
    assert home.list_rules() == []
