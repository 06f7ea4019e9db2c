"""
Error taxonomy for desk-automation.

Management calls (register, update, execute-now) raise these to the caller.
Failures inside the periodic evaluation pass are logged and reported through
the notifier instead.
"""

from typing import List, Optional


class AutomationError(Exception):
    """Base class for all desk-automation errors."""


class ConfigurationError(AutomationError):
    """Loading or saving the configuration failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RuleNotFound(AutomationError):
    """No stored rule has the given id."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule not found: {rule_id}")


class CapabilityNotFound(AutomationError):
    """The capability is not loaded in the registry."""

    def __init__(self, capability_id: str) -> None:
        self.capability_id = capability_id
        super().__init__(f"Capability not found: {capability_id}")


class CapabilityIncompatible(AutomationError):
    """The capability reported missing hard requirements."""

    def __init__(self, capability_id: str, reasons: List[str]) -> None:
        self.capability_id = capability_id
        self.reasons = list(reasons)
        super().__init__(
            f"Capability '{capability_id}' is not compatible: {', '.join(self.reasons)}"
        )


class ActionNotSupported(AutomationError):
    """The capability does not declare the requested action."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Action not supported: {action}")


class InvalidParameters(AutomationError):
    """Action parameters failed validation."""

    def __init__(self, details: str) -> None:
        self.details = details
        super().__init__(f"Invalid parameters: {details}")


class ExecutionFailed(AutomationError):
    """A capability raised while executing an action."""

    def __init__(self, action: str, cause: BaseException) -> None:
        self.action = action
        self.cause = cause
        super().__init__(f"Execution of '{action}' failed: {cause}")


class AlreadyRunning(AutomationError):
    """Lifecycle misuse: the engine is already running."""

    def __init__(self) -> None:
        super().__init__("Engine is already running")


class NotRunning(AutomationError):
    """Lifecycle misuse: the engine is not running."""

    def __init__(self) -> None:
        super().__init__("Engine is not running")
