"""
Exception types raised at the boundary of the home-automation core.

Validation failures are raised before anything is mutated, so a caller that
catches one of these can assume the system state is unchanged.
"""


class AutomationError(Exception):
    """Base class for all home-automation errors."""


class UnknownDeviceError(AutomationError, LookupError):
    """Raised when a device name is not present in the registry."""

    def __init__(self, device: str) -> None:
        super().__init__(f"Unknown device: '{device}'")
        self.device = device


class InvalidAttributeError(AutomationError, ValueError):
    """Raised when an attribute is unknown or a value is not acceptable for it."""

    def __init__(self, device: str, attribute: str, message: str) -> None:
        super().__init__(f"{device}.{attribute}: {message}")
        self.device = device
        self.attribute = attribute


class TypeMismatchError(InvalidAttributeError):
    """Value has the wrong type for the attribute (e.g. a number for a boolean)."""


class OutOfRangeError(InvalidAttributeError):
    """Value is outside the attribute's range and the attribute does not clamp."""


class InvalidTimeError(AutomationError, ValueError):
    """Raised for time-of-day strings that are not valid 24-hour HH:MM."""


class InvalidRuleError(AutomationError, ValueError):
    """Raised for malformed rule conditions or actions."""


class NotFoundError(AutomationError, LookupError):
    """Raised when a task or rule id does not exist."""


class AlreadyFiredError(AutomationError):
    """Raised when cancelling a scheduled task that has already fired."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' has already fired")
        self.task_id = task_id
