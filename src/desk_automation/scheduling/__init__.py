"""
Scheduler for desk-automation.

Decides when automation rules fire and dispatches them.

Features:
- Time-of-day triggers with optional weekday filter
- Sunrise/sunset triggers with minute offsets
- Interval triggers
- Idempotent evaluation (no double fire within one trigger window)
- Periodic asyncio evaluation loop with fire-and-forget dispatch
"""

from .models import (
    # Enums
    TriggerType,
    SolarEvent,
    # Weekdays
    WEEKDAYS,
    WEEKENDS,
    # Triggers
    TimeOfDayTrigger,
    SolarEventTrigger,
    IntervalTrigger,
    TriggerConfig,
    serialize_trigger,
    parse_trigger,
    # Rule
    AutomationRule,
    ScheduledTask,
    ExecutionRecord,
)
from .solar import SolarTimeCalculator, sunrise, sunset
from .evaluators import TriggerEvaluator
from .registry import ScheduleRegistry

__all__ = [
    # Registry
    "ScheduleRegistry",
    # Evaluation
    "TriggerEvaluator",
    "SolarTimeCalculator",
    "sunrise",
    "sunset",
    # Enums
    "TriggerType",
    "SolarEvent",
    "WEEKDAYS",
    "WEEKENDS",
    # Triggers
    "TimeOfDayTrigger",
    "SolarEventTrigger",
    "IntervalTrigger",
    "TriggerConfig",
    "serialize_trigger",
    "parse_trigger",
    # Rule
    "AutomationRule",
    "ScheduledTask",
    "ExecutionRecord",
]
