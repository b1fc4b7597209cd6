"""
DeviceRegistry: the authoritative store of device state.

The registry owns the devices, not the behavior. Writes go through
ExecutionCoordinator, which is the only caller of set().
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from home_automation.core.bus import EventBus, state_changed
from home_automation.core.devices import Device, DeviceType, attribute_spec
from home_automation.core.errors import UnknownDeviceError

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Holds every device and validates every attribute write.

    Responsibilities:
    - Store devices in insertion order
    - Validate writes against the device type's schema (clamp or reject)
    - Publish StateChanged for every write that changes a value

    A single lock makes get() and set() atomic with respect to each other;
    readers never see a partially applied write.
    """

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        """Initialize an empty registry."""
        self._devices: Dict[str, Device] = {}
        self._lock = threading.RLock()
        self._bus = bus

    def set_bus(self, bus: EventBus) -> None:
        """
        Set the EventBus that receives StateChanged events.

        Args:
            bus: The EventBus instance
        """
        self._bus = bus

    def add(
        self,
        name: str,
        device_type: "DeviceType | str",
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> Device:
        """
        Add a new device.

        Args:
            name: Unique device name
            device_type: Device type (enum or its name, e.g. "Light")
            attributes: Optional initial attribute values (validated)

        Returns:
            Snapshot of the created Device

        Raises:
            ValueError: If the name is empty or already taken
            InvalidAttributeError: If an initial value is invalid
        """
        if not name or not name.strip():
            raise ValueError("Device name must not be empty")
        device = Device.create(name, DeviceType.parse(device_type), attributes)

        with self._lock:
            if name in self._devices:
                raise ValueError(f"Device '{name}' already exists")
            self._devices[name] = device

        logger.info(f"Added device: {name} ({device.type.value})")
        return device.snapshot()

    def remove(self, name: str) -> None:
        """
        Remove a device.

        Tasks and rules that still reference it are reported as dangling
        when they are next evaluated.

        Raises:
            UnknownDeviceError: If the device does not exist
        """
        with self._lock:
            if name not in self._devices:
                raise UnknownDeviceError(name)
            del self._devices[name]
        logger.info(f"Removed device: {name}")

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._devices

    def get(self, name: str) -> Device:
        """
        Get a snapshot of a device.

        Raises:
            UnknownDeviceError: If the device does not exist
        """
        with self._lock:
            device = self._devices.get(name)
            if device is None:
                raise UnknownDeviceError(name)
            return device.snapshot()

    def get_value(self, name: str, attribute: str) -> Any:
        """
        Get the current value of one attribute.

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the device has no such attribute
        """
        with self._lock:
            device = self._devices.get(name)
            if device is None:
                raise UnknownDeviceError(name)
            attribute_spec(device.type, name, attribute)
            return device.attributes[attribute]

    def list(self) -> List[Device]:
        """
        Get snapshots of all devices.

        Returns:
            Devices in the order they were added
        """
        with self._lock:
            return [device.snapshot() for device in self._devices.values()]

    def validate(self, name: str, attribute: str, value: Any) -> Any:
        """
        Check a write without applying it.

        Returns:
            The value that set() would store (after clamping)

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute or value is not acceptable
        """
        with self._lock:
            device = self._devices.get(name)
            if device is None:
                raise UnknownDeviceError(name)
            device_type = device.type
        return attribute_spec(device_type, name, attribute).normalize(name, attribute, value)

    def set(
        self,
        name: str,
        attribute: str,
        value: Any,
        cascade_id: Optional[str] = None,
        depth: int = 0,
    ) -> Tuple[Any, Any]:
        """
        Apply a validated write and publish StateChanged.

        Only ExecutionCoordinator calls this.

        Args:
            name: Device name
            attribute: Attribute name
            value: Raw value (clamped or rejected per the schema)
            cascade_id: Cascade the resulting event belongs to
            depth: Rule depth of the resulting event

        Returns:
            (old, new) values; new is the value actually stored

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute or value is not acceptable
        """
        with self._lock:
            device = self._devices.get(name)
            if device is None:
                raise UnknownDeviceError(name)
            new = attribute_spec(device.type, name, attribute).normalize(name, attribute, value)
            old = device.attributes[attribute]
            device.attributes[attribute] = new

        if old != new:
            logger.debug(f"{name}.{attribute}: {old!r} -> {new!r}")
            if self._bus is not None:
                self._bus.publish(state_changed(name, attribute, old, new, cascade_id, depth))
        return old, new
