"""Tests for device types and attribute schemas."""

import pytest

from home_automation.core.devices import (
    AttributeKind,
    AttributeSpec,
    Device,
    DeviceType,
    attribute_spec,
)
from home_automation.core.errors import (
    InvalidAttributeError,
    OutOfRangeError,
    TypeMismatchError,
)


class TestDeviceType:
    def test_parse_accepts_value_and_name(self):
        assert DeviceType.parse("Light") == DeviceType.LIGHT
        assert DeviceType.parse("SECURITY_CAMERA") == DeviceType.SECURITY_CAMERA
        assert DeviceType.parse(DeviceType.SWITCH) == DeviceType.SWITCH

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            DeviceType.parse("Toaster")


class TestAttributeSpec:
    """Tests for value normalization."""

    def test_int_in_range_kept(self):
        spec = attribute_spec(DeviceType.THERMOSTAT, "T", "temperature")
        assert spec.normalize("T", "temperature", 72) == 72

    def test_int_clamped(self):
        spec = attribute_spec(DeviceType.THERMOSTAT, "T", "temperature")
        assert spec.normalize("T", "temperature", 95) == 80
        assert spec.normalize("T", "temperature", 10) == 60

    def test_float_rounded(self):
        spec = attribute_spec(DeviceType.LIGHT, "L", "brightness")
        assert spec.normalize("L", "brightness", 42.6) == 43

    def test_bool_rejected_for_int(self):
        spec = attribute_spec(DeviceType.LIGHT, "L", "brightness")
        with pytest.raises(TypeMismatchError):
            spec.normalize("L", "brightness", True)

    def test_non_finite_rejected(self):
        spec = attribute_spec(DeviceType.LIGHT, "L", "brightness")
        with pytest.raises(TypeMismatchError):
            spec.normalize("L", "brightness", float("nan"))

    def test_bool_attribute_accepts_only_bool(self):
        spec = attribute_spec(DeviceType.LIGHT, "L", "power")
        assert spec.normalize("L", "power", True) is True
        with pytest.raises(TypeMismatchError):
            spec.normalize("L", "power", 1)
        with pytest.raises(TypeMismatchError):
            spec.normalize("L", "power", "on")

    def test_reject_instead_of_clamp(self):
        spec = AttributeSpec(kind=AttributeKind.INT, default=0, minimum=0, maximum=10, clamp=False)
        with pytest.raises(OutOfRangeError) as exc:
            spec.normalize("Dev", "level", 11)
        assert exc.value.device == "Dev"
        assert exc.value.attribute == "level"

    def test_unknown_attribute(self):
        with pytest.raises(InvalidAttributeError):
            attribute_spec(DeviceType.SECURITY_CAMERA, "Cam", "brightness")


class TestDevice:
    def test_create_with_defaults(self):
        device = Device.create("Hall Light", DeviceType.LIGHT)
        assert device.attributes == {"power": False, "brightness": 50}

    def test_create_with_initial_values(self):
        device = Device.create("Bedroom Thermostat", DeviceType.THERMOSTAT, {"temperature": 99})
        assert device.attributes["temperature"] == 80

    def test_snapshot_is_detached(self):
        device = Device.create("Cam", DeviceType.SECURITY_CAMERA)
        snapshot = device.snapshot()
        snapshot.attributes["armed"] = True
        assert device.attributes["armed"] is False

    def test_to_dict(self):
        device = Device.create("Hall Switch", DeviceType.SWITCH)
        assert device.to_dict() == {
            "name": "Hall Switch",
            "type": "Switch",
            "attributes": {"power": False},
        }
