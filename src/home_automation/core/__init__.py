"""
Core components of the home-automation kernel.

This package contains:
- bus: Event Bus implementation
- devices: Device dataclass and attribute schemas
- registry: DeviceRegistry, the authoritative device state
- coordinator: ExecutionCoordinator, the single write path
- clock: Time sources for scheduling
- config: HomeConfig
- diagnostics: Runtime condition reporting
- errors: Exception hierarchy
"""

from home_automation.core.bus import Event, EventBus, EventFilter, Subscription
from home_automation.core.clock import Clock, MockClock, SystemClock, parse_time_of_day
from home_automation.core.config import DeviceConfig, HomeConfig, default_config
from home_automation.core.coordinator import ExecutionCoordinator, ExecutionLogEntry, Origin
from home_automation.core.devices import AttributeSpec, Device, DeviceType
from home_automation.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from home_automation.core.registry import DeviceRegistry

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "Subscription",
    "Clock",
    "MockClock",
    "SystemClock",
    "parse_time_of_day",
    "DeviceConfig",
    "HomeConfig",
    "default_config",
    "ExecutionCoordinator",
    "ExecutionLogEntry",
    "Origin",
    "AttributeSpec",
    "Device",
    "DeviceType",
    "Diagnostic",
    "DiagnosticKind",
    "Diagnostics",
    "DeviceRegistry",
]
