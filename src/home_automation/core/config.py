"""
Configuration for a SmartHome instance.

Plain dicts in, dataclasses out. The host is responsible for where the dict
comes from (file, UI, integration options).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from home_automation.core.devices import DeviceType

CURRENT_CONFIG_VERSION = 1

_INT_FIELDS = (
    "queue_size",
    "max_cascade_depth",
    "tick_interval_seconds",
    "tick_window_seconds",
    "history_size",
)


@dataclass
class DeviceConfig:
    """A device to create at startup."""

    name: str
    type: DeviceType
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "type": self.type.value}
        if self.attributes:
            result["attributes"] = dict(self.attributes)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceConfig":
        if not isinstance(data, dict):
            raise ValueError(f"Device config must be a dict, got {data!r}")
        if not isinstance(data.get("attributes", {}), dict):
            raise ValueError(f"Device attributes must be a dict: {data}")
        if not data.get("name") or not isinstance(data["name"], str):
            raise ValueError(f"Device config is missing a name: {data}")
        return cls(
            name=data["name"],
            type=DeviceType.parse(data.get("type", "")),
            attributes=dict(data.get("attributes", {})),
        )


def default_devices() -> List[DeviceConfig]:
    """The control panel's stock devices."""
    return [
        DeviceConfig(name="Living Room Light", type=DeviceType.LIGHT),
        DeviceConfig(name="Bedroom Thermostat", type=DeviceType.THERMOSTAT),
        DeviceConfig(name="Front Door Camera", type=DeviceType.SECURITY_CAMERA),
    ]


@dataclass
class HomeConfig:
    """
    Runtime configuration.

    Attributes:
        version: Config schema version
        queue_size: Per-subscriber event bus queue bound
        max_cascade_depth: Rule firings allowed in one cascade
        tick_interval_seconds: Scheduler polling period (1..60)
        tick_window_seconds: How long after its trigger time a task may still fire
        history_size: Size of the execution log and rule history ring buffers
        devices: Devices created at startup
    """

    version: int = CURRENT_CONFIG_VERSION
    queue_size: int = 256
    max_cascade_depth: int = 10
    tick_interval_seconds: int = 30
    tick_window_seconds: int = 60
    history_size: int = 500
    devices: List[DeviceConfig] = field(default_factory=default_devices)

    def __post_init__(self) -> None:
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if self.max_cascade_depth < 1:
            raise ValueError("max_cascade_depth must be at least 1")
        if not 1 <= self.tick_interval_seconds <= 60:
            raise ValueError("tick_interval_seconds must be between 1 and 60")
        if self.tick_window_seconds < self.tick_interval_seconds:
            raise ValueError("tick_window_seconds must cover at least one tick interval")
        if self.history_size < 1:
            raise ValueError("history_size must be at least 1")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "version": self.version,
            "queue_size": self.queue_size,
            "max_cascade_depth": self.max_cascade_depth,
            "tick_interval_seconds": self.tick_interval_seconds,
            "tick_window_seconds": self.tick_window_seconds,
            "history_size": self.history_size,
            "devices": [d.to_dict() for d in self.devices],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "HomeConfig":
        """
        Deserialize from dict, filling in defaults for missing keys.

        Raises:
            ValueError: If a value is invalid or the version is unsupported
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a dict, got {type(data).__name__}")
        version = data.get("version", CURRENT_CONFIG_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError(f"Config version must be an integer, got {version!r}")
        if version > CURRENT_CONFIG_VERSION:
            raise ValueError(f"Unsupported config version: {version}")

        if "devices" in data and not isinstance(data["devices"], list):
            raise ValueError("devices must be a list")
        devices = (
            [DeviceConfig.from_dict(d) for d in data["devices"]]
            if "devices" in data
            else default_devices()
        )
        return cls(
            version=CURRENT_CONFIG_VERSION,
            queue_size=data.get("queue_size", 256),
            max_cascade_depth=data.get("max_cascade_depth", 10),
            tick_interval_seconds=data.get("tick_interval_seconds", 30),
            tick_window_seconds=data.get("tick_window_seconds", 60),
            history_size=data.get("history_size", 500),
            devices=devices,
        )


def default_config() -> Dict[str, Any]:
    """Get default configuration as a dict."""
    return HomeConfig().to_dict()
