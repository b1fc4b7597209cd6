"""
home-automation: a device-state kernel with a scheduler and a rule engine.

This library provides the core of a home control panel:
- Device registry with typed, range-checked attributes
- Event Bus with bounded per-subscriber queues
- Time-of-day scheduler (once / daily)
- Edge-triggered condition -> action rule engine with cascade bounding
- Execution coordinator: single, per-device serialized write path with audit log
"""

from home_automation.core.bus import Event, EventBus, EventFilter
from home_automation.core.clock import MockClock, SystemClock
from home_automation.core.config import HomeConfig
from home_automation.core.coordinator import Origin
from home_automation.core.devices import DeviceType
from home_automation.core.registry import DeviceRegistry
from home_automation.home import SmartHome

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "MockClock",
    "SystemClock",
    "HomeConfig",
    "Origin",
    "DeviceType",
    "DeviceRegistry",
    "SmartHome",
]
