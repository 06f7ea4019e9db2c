"""
Data models for the scheduler.

Defines automation rules, their triggers, and the scheduled task bookkeeping.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, UTC
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional

from desk_automation.core.values import ParameterValue, unwrap_parameters, wrap_parameters


# =============================================================================
# Enums
# =============================================================================


class TriggerType(Enum):
    """Types of triggers that can activate a rule."""

    TIME = "time"  # Specific time of day
    SUNRISE = "sunrise"
    SUNSET = "sunset"
    INTERVAL = "interval"  # Fixed period since last fire


class SolarEvent(Enum):
    """Solar events a trigger can follow."""

    SUNRISE = "sunrise"
    SUNSET = "sunset"


# ISO weekday numbers (datetime.isoweekday)
MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY = range(1, 8)
WEEKDAYS: FrozenSet[int] = frozenset({MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY})
WEEKENDS: FrozenSet[int] = frozenset({SATURDAY, SUNDAY})
DAY_NAMES = {1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun"}


def _format_offset(offset_minutes: int) -> str:
    return f"+{offset_minutes}min" if offset_minutes > 0 else f"{offset_minutes}min"


def _format_seconds(seconds: float) -> str:
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}min"
    return f"{int(seconds // 3600)}h"


# =============================================================================
# Trigger Configs
# =============================================================================


@dataclass(frozen=True)
class TimeOfDayTrigger:
    """Trigger at a wall-clock time, optionally only on some weekdays.

    hour and minute are clamped into range; an empty days_of_week means
    every day.
    """

    hour: int
    minute: int
    days_of_week: FrozenSet[int] = frozenset()  # ISO weekdays, 1 = Monday

    def __post_init__(self) -> None:
        object.__setattr__(self, "hour", max(0, min(23, int(self.hour))))
        object.__setattr__(self, "minute", max(0, min(59, int(self.minute))))
        object.__setattr__(
            self,
            "days_of_week",
            frozenset(int(d) for d in self.days_of_week if 1 <= int(d) <= 7),
        )

    @classmethod
    def daily(cls, hour: int, minute: int) -> "TimeOfDayTrigger":
        return cls(hour, minute)

    @classmethod
    def weekdays(cls, hour: int, minute: int) -> "TimeOfDayTrigger":
        return cls(hour, minute, WEEKDAYS)

    @classmethod
    def weekends(cls, hour: int, minute: int) -> "TimeOfDayTrigger":
        return cls(hour, minute, WEEKENDS)

    def fires_on(self, isoweekday: int) -> bool:
        """Check if this trigger is active on the given ISO weekday."""
        return not self.days_of_week or isoweekday in self.days_of_week

    @property
    def days_description(self) -> str:
        if not self.days_of_week:
            return "Every day"
        if self.days_of_week == WEEKDAYS:
            return "Weekdays"
        if self.days_of_week == WEEKENDS:
            return "Weekends"
        return ", ".join(DAY_NAMES[d] for d in sorted(self.days_of_week))

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType.TIME

    @property
    def display_name(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d} - {self.days_description}"


@dataclass(frozen=True)
class SolarEventTrigger:
    """Trigger at sunrise or sunset, shifted by offset_minutes."""

    event: SolarEvent
    offset_minutes: int = 0

    @classmethod
    def sunrise(cls, offset_minutes: int = 0) -> "SolarEventTrigger":
        return cls(SolarEvent.SUNRISE, offset_minutes)

    @classmethod
    def sunset(cls, offset_minutes: int = 0) -> "SolarEventTrigger":
        return cls(SolarEvent.SUNSET, offset_minutes)

    @property
    def trigger_type(self) -> TriggerType:
        if self.event is SolarEvent.SUNRISE:
            return TriggerType.SUNRISE
        return TriggerType.SUNSET

    @property
    def display_name(self) -> str:
        name = "Sunrise" if self.event is SolarEvent.SUNRISE else "Sunset"
        if self.offset_minutes == 0:
            return name
        return f"{name} {_format_offset(self.offset_minutes)}"


@dataclass(frozen=True)
class IntervalTrigger:
    """Trigger every `seconds`, starting with the first evaluation."""

    seconds: float

    def __post_init__(self) -> None:
        if self.seconds <= 0:
            raise ValueError(f"Interval must be positive, got {self.seconds}")

    @property
    def period(self) -> timedelta:
        return timedelta(seconds=self.seconds)

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType.INTERVAL

    @property
    def display_name(self) -> str:
        return f"Every {_format_seconds(self.seconds)}"


TriggerConfig = TimeOfDayTrigger | SolarEventTrigger | IntervalTrigger


def serialize_trigger(trigger: TriggerConfig) -> Dict[str, Any]:
    """Serialize a trigger config to a plain dict."""
    if isinstance(trigger, TimeOfDayTrigger):
        return {
            "type": "time",
            "hour": trigger.hour,
            "minute": trigger.minute,
            "days_of_week": sorted(trigger.days_of_week),
        }
    elif isinstance(trigger, SolarEventTrigger):
        return {
            "type": trigger.event.value,
            "offset_minutes": trigger.offset_minutes,
        }
    elif isinstance(trigger, IntervalTrigger):
        return {"type": "interval", "seconds": trigger.seconds}
    raise ValueError(f"Unknown trigger: {trigger!r}")


def parse_trigger(data: Dict[str, Any]) -> TriggerConfig:
    """Parse trigger config from dict."""
    trigger_type = data.get("type")

    if trigger_type == "time":
        return TimeOfDayTrigger(
            hour=data["hour"],
            minute=data["minute"],
            days_of_week=frozenset(data.get("days_of_week", [])),
        )
    elif trigger_type in ("sunrise", "sunset"):
        return SolarEventTrigger(
            event=SolarEvent(trigger_type),
            offset_minutes=int(data.get("offset_minutes", 0)),
        )
    elif trigger_type == "interval":
        return IntervalTrigger(seconds=data["seconds"])
    else:
        raise ValueError(f"Unknown trigger type: {trigger_type}")


# =============================================================================
# Automation Rule
# =============================================================================


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _new_rule_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class AutomationRule:
    """A complete automation rule.

    Consists of:
    - id: Unique, immutable identifier
    - name / description: Human-readable labels
    - enabled: Whether rule is active
    - trigger: When the rule fires
    - capability_id / action / parameters: What to execute
    - created_at / updated_at: Bookkeeping timestamps (UTC)
    """

    name: str
    trigger: TriggerConfig
    capability_id: str
    action: str
    parameters: Dict[str, ParameterValue] = field(default_factory=dict)
    enabled: bool = True
    description: str = ""
    id: str = field(default_factory=_new_rule_id)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.parameters = wrap_parameters(self.parameters)
        if self.updated_at is None:
            self.updated_at = self.created_at

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Rule id is immutable")
        super().__setattr__(name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AutomationRule):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def same_as(self, other: "AutomationRule") -> bool:
        """Field-by-field comparison (== only compares ids)."""
        return self.to_dict() == other.to_dict()

    def touched(self, now: Optional[datetime] = None) -> "AutomationRule":
        """
        Return a copy with a newer updated_at.

        The new timestamp is strictly greater than the current one even when
        the clock has not advanced.
        """
        now = now or _utc_now()
        previous = self.updated_at or self.created_at
        if now <= previous:
            now = previous + timedelta(microseconds=1)
        return replace(self, parameters=dict(self.parameters), updated_at=now)

    def with_changes(self, **changes: Any) -> "AutomationRule":
        """Return a touched copy with the given fields replaced (id is kept)."""
        if "id" in changes:
            raise ValueError("Rule id is immutable")
        return replace(self, **changes).touched()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "trigger": serialize_trigger(self.trigger),
            "capability_id": self.capability_id,
            "action": self.action,
            "parameters": unwrap_parameters(self.parameters),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutomationRule":
        """Deserialize from dict."""
        created_at = _parse_timestamp(data.get("created_at")) or _utc_now()
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            enabled=data.get("enabled", True),
            trigger=parse_trigger(data["trigger"]),
            capability_id=data["capability_id"],
            action=data["action"],
            parameters=data.get("parameters") or {},
            created_at=created_at,
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (datetime objects pass through, naive = UTC)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# Scheduled Task
# =============================================================================


ScheduledAction = Callable[[], Awaitable[None]]


@dataclass
class ScheduledTask:
    """A rule installed in the schedule registry plus its bookkeeping.

    next_fire_time is only populated for solar triggers.
    """

    rule: AutomationRule
    action: ScheduledAction
    last_fire_time: Optional[datetime] = None
    next_fire_time: Optional[datetime] = None


# =============================================================================
# Execution Records
# =============================================================================


@dataclass
class ExecutionRecord:
    """Record of an automation execution (for history/debugging)."""

    rule_id: str
    rule_name: str
    capability_id: str
    action: str
    source: str  # "scheduled" or "manual"
    success: bool
    error: Optional[str]
    timestamp: datetime
    duration_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "capability_id": self.capability_id,
            "action": self.action,
            "source": self.source,
            "success": self.success,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
        }
