"""
Device dataclass and per-type attribute schemas.

A Device is a named, typed entity with a bounded set of mutable attributes.
Each DeviceType carries its own attribute schema; the registry consults the
schema to validate and normalize every write.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from home_automation.core.errors import (
    InvalidAttributeError,
    OutOfRangeError,
    TypeMismatchError,
)


class DeviceType(Enum):
    """Supported device types."""

    LIGHT = "Light"
    THERMOSTAT = "Thermostat"
    SECURITY_CAMERA = "SecurityCamera"
    SWITCH = "Switch"

    @classmethod
    def parse(cls, value: "str | DeviceType") -> "DeviceType":
        """Accept either the enum, its value ("Light") or its name ("LIGHT")."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        raise ValueError(f"Unknown device type: {value}")


class AttributeKind(Enum):
    """Value kinds an attribute can hold."""

    BOOL = "bool"
    INT = "int"


@dataclass(frozen=True)
class AttributeSpec:
    """
    Declared type and range of a single device attribute.

    Attributes:
        kind: Value kind (bool or int)
        default: Initial value for new devices
        minimum: Lower bound for int attributes
        maximum: Upper bound for int attributes
        clamp: Clamp out-of-range ints instead of rejecting them
    """

    kind: AttributeKind
    default: Any
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    clamp: bool = True

    @property
    def is_numeric(self) -> bool:
        return self.kind == AttributeKind.INT

    def normalize(self, device: str, attribute: str, value: Any) -> Any:
        """
        Validate a raw value and return the value that would be stored.

        Raises:
            TypeMismatchError: If the value has the wrong type
            OutOfRangeError: If the value is out of range and clamping is off
        """
        if self.kind == AttributeKind.BOOL:
            if not isinstance(value, bool):
                raise TypeMismatchError(
                    device, attribute, f"expected a boolean, got {value!r}"
                )
            return value

        # bool is an int subclass; never let True/False through as a number
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeMismatchError(device, attribute, f"expected a number, got {value!r}")
        if isinstance(value, float):
            if not math.isfinite(value):
                raise TypeMismatchError(device, attribute, f"expected a finite number, got {value!r}")
            value = int(round(value))

        if self.minimum is not None and value < self.minimum:
            if not self.clamp:
                raise OutOfRangeError(device, attribute, f"{value} is below {self.minimum}")
            return self.minimum
        if self.maximum is not None and value > self.maximum:
            if not self.clamp:
                raise OutOfRangeError(device, attribute, f"{value} is above {self.maximum}")
            return self.maximum
        return value


def _switch() -> AttributeSpec:
    return AttributeSpec(kind=AttributeKind.BOOL, default=False)


DEVICE_SCHEMAS: Dict[DeviceType, Dict[str, AttributeSpec]] = {
    DeviceType.LIGHT: {
        "power": _switch(),
        "brightness": AttributeSpec(kind=AttributeKind.INT, default=50, minimum=0, maximum=100),
    },
    DeviceType.THERMOSTAT: {
        "power": _switch(),
        "temperature": AttributeSpec(kind=AttributeKind.INT, default=70, minimum=60, maximum=80),
    },
    DeviceType.SECURITY_CAMERA: {
        "armed": _switch(),
    },
    DeviceType.SWITCH: {
        "power": _switch(),
    },
}


def attribute_spec(device_type: DeviceType, device: str, attribute: str) -> AttributeSpec:
    """
    Look up the schema entry for an attribute.

    Raises:
        InvalidAttributeError: If the device type has no such attribute
    """
    spec = DEVICE_SCHEMAS[device_type].get(attribute)
    if spec is None:
        raise InvalidAttributeError(
            device, attribute, f"not an attribute of {device_type.value}"
        )
    return spec


@dataclass
class Device:
    """
    A device owned by the DeviceRegistry.

    Attributes:
        name: Stable unique name (e.g., "Living Room Light")
        type: Device type tag
        attributes: Current attribute values, keyed by attribute name
    """

    name: str
    type: DeviceType
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        name: str,
        device_type: DeviceType,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> "Device":
        """Create a device with schema defaults, overridden by validated initial values."""
        schema = DEVICE_SCHEMAS[device_type]
        values = {attr: spec.default for attr, spec in schema.items()}
        for attr, raw in (attributes or {}).items():
            values[attr] = attribute_spec(device_type, name, attr).normalize(name, attr, raw)
        return cls(name=name, type=device_type, attributes=values)

    def snapshot(self) -> "Device":
        """Return a detached copy safe to hand out of the registry."""
        return Device(name=self.name, type=self.type, attributes=dict(self.attributes))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for display/transport."""
        return {
            "name": self.name,
            "type": self.type.value,
            "attributes": dict(self.attributes),
        }
