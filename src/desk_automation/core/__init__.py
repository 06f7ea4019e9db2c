"""
Core components of desk-automation.

This package contains:
- bus: Event Bus implementation
- errors: Error taxonomy
- values: Tagged parameter values
- notifications: Notifier interface and implementations
- orchestrator: AutomationOrchestrator (import from desk_automation.core.orchestrator)
"""

from desk_automation.core.bus import Event, EventBus, EventFilter
from desk_automation.core.errors import (
    AutomationError,
    ConfigurationError,
    RuleNotFound,
    CapabilityNotFound,
    CapabilityIncompatible,
    ActionNotSupported,
    InvalidParameters,
    ExecutionFailed,
    AlreadyRunning,
    NotRunning,
)
from desk_automation.core.notifications import Notifier, LoggingNotifier, MockNotifier
from desk_automation.core.values import ParameterValue, ValueKind

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "AutomationError",
    "ConfigurationError",
    "RuleNotFound",
    "CapabilityNotFound",
    "CapabilityIncompatible",
    "ActionNotSupported",
    "InvalidParameters",
    "ExecutionFailed",
    "AlreadyRunning",
    "NotRunning",
    "Notifier",
    "LoggingNotifier",
    "MockNotifier",
    "ParameterValue",
    "ValueKind",
]
