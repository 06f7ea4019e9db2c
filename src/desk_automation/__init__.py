"""
desk-automation: Scheduled automations for desk hardware.

This library provides:
- Time-of-day, sunrise/sunset and interval triggers
- A periodic scheduler with idempotent trigger evaluation
- Pluggable capabilities with typed, validated actions
- An orchestrator tying rules, scheduler and capabilities together
"""

from desk_automation.core.bus import Event, EventBus, EventFilter
from desk_automation.core.orchestrator import AutomationOrchestrator, EngineState
from desk_automation.capabilities import CapabilityRegistry
from desk_automation.scheduling import AutomationRule, ScheduleRegistry
from desk_automation.storage import ConfigurationStore, GlobalSettings

__version__ = "0.1.0"

__all__ = [
    "AutomationOrchestrator",
    "EngineState",
    "AutomationRule",
    "ScheduleRegistry",
    "CapabilityRegistry",
    "ConfigurationStore",
    "GlobalSettings",
    "Event",
    "EventBus",
    "EventFilter",
]
