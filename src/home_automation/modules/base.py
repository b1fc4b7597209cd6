"""
Base classes for home-automation modules.

Modules are plug-ins that add behavior on top of the device registry.
"""

from abc import ABC, abstractmethod
from typing import Dict


class HomeModule(ABC):
    """
    Base class for behavior modules.

    A module:
    - Receives events from the Event Bus
    - Reads device state from the DeviceRegistry
    - Submits writes through the ExecutionCoordinator, never directly
    - Maintains its own runtime state
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier for this module type."""
        pass

    @abstractmethod
    def attach(self, bus) -> None:
        """
        Attach the module to the kernel.

        Register event subscriptions and capture the bus reference.

        Args:
            bus: EventBus instance
        """
        pass

    def dump_state(self) -> Dict:
        """
        Serialize definitions and runtime state for persistence.

        Host platform is responsible for storage.

        Returns:
            Serialized state dict
        """
        return {}

    def restore_state(self, state: Dict) -> None:
        """
        Restore definitions and runtime state from serialized form.

        Args:
            state: Previously serialized state dict
        """
        pass
