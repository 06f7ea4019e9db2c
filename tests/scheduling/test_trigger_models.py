"""Tests for trigger configs and automation rules."""

from datetime import datetime, timedelta, timezone

import pytest

from desk_automation.core.values import ParameterValue
from desk_automation.scheduling import (
    WEEKDAYS,
    AutomationRule,
    IntervalTrigger,
    SolarEvent,
    SolarEventTrigger,
    TimeOfDayTrigger,
    TriggerType,
    parse_trigger,
    serialize_trigger,
)
from desk_automation.scheduling.models import SATURDAY, SUNDAY


class TestTimeOfDayTrigger:
    def test_values_are_clamped(self):
        trigger = TimeOfDayTrigger(27, -5)
        assert (trigger.hour, trigger.minute) == (23, 0)

    def test_invalid_days_dropped(self):
        trigger = TimeOfDayTrigger(8, 0, frozenset({0, 1, 8}))
        assert trigger.days_of_week == frozenset({1})

    def test_empty_days_means_every_day(self):
        trigger = TimeOfDayTrigger.daily(8, 0)
        assert all(trigger.fires_on(day) for day in range(1, 8))

    def test_weekends(self):
        trigger = TimeOfDayTrigger.weekends(9, 30)
        assert trigger.days_of_week == frozenset({SATURDAY, SUNDAY})
        assert not trigger.fires_on(1)

    def test_display_names(self):
        assert TimeOfDayTrigger.weekdays(8, 5).display_name == "08:05 - Weekdays"
        assert TimeOfDayTrigger.daily(22, 0).display_name == "22:00 - Every day"
        assert TimeOfDayTrigger(7, 0, frozenset({1, 3})).days_description == "Mon, Wed"
        assert TimeOfDayTrigger(7, 0).trigger_type is TriggerType.TIME


class TestOtherTriggers:
    def test_solar_display(self):
        assert SolarEventTrigger.sunset(-30).display_name == "Sunset -30min"
        assert SolarEventTrigger.sunrise(15).display_name == "Sunrise +15min"
        assert SolarEventTrigger.sunrise().display_name == "Sunrise"
        assert SolarEventTrigger.sunset().trigger_type is TriggerType.SUNSET

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            IntervalTrigger(0)

    def test_interval_display(self):
        assert IntervalTrigger(30).display_name == "Every 30s"
        assert IntervalTrigger(300).display_name == "Every 5min"
        assert IntervalTrigger(7200).display_name == "Every 2h"
        assert IntervalTrigger(1.5).period == timedelta(seconds=1.5)


class TestTriggerSerialization:
    @pytest.mark.parametrize(
        "trigger",
        [
            TimeOfDayTrigger(8, 0, WEEKDAYS),
            SolarEventTrigger(SolarEvent.SUNSET, -20),
            IntervalTrigger(90),
        ],
    )
    def test_parse_serialized(self, trigger):
        assert parse_trigger(serialize_trigger(trigger)) == trigger

    def test_days_are_sorted(self):
        data = serialize_trigger(TimeOfDayTrigger(8, 0, frozenset({5, 1, 3})))
        assert data["days_of_week"] == [1, 3, 5]

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown trigger type"):
            parse_trigger({"type": "lunar"})


class TestAutomationRule:
    def test_defaults(self):
        rule = AutomationRule(
            name="Morning",
            trigger=TimeOfDayTrigger(7, 0),
            capability_id="mock",
            action="ping",
        )
        assert rule.enabled
        assert len(rule.id) == 32
        assert rule.updated_at == rule.created_at

    def test_parameters_are_wrapped(self):
        rule = AutomationRule(
            name="Dim",
            trigger=IntervalTrigger(60),
            capability_id="mock",
            action="set_level",
            parameters={"level": 0.2},
        )
        assert rule.parameters["level"] == ParameterValue.of(0.2)

    def test_equality_by_id(self, noon_rule):
        renamed = noon_rule.with_changes(name="Renamed")
        assert renamed == noon_rule
        assert not renamed.same_as(noon_rule)
        assert hash(renamed) == hash(noon_rule)

    def test_id_is_immutable(self, noon_rule):
        with pytest.raises(ValueError):
            noon_rule.with_changes(id="other")
        with pytest.raises(AttributeError):
            noon_rule.id = "other"
        assert noon_rule.with_changes(name="Renamed").id == noon_rule.id

    def test_touched_is_strictly_newer(self, noon_rule):
        past = noon_rule.updated_at - timedelta(hours=1)
        touched = noon_rule.touched(now=past)
        assert touched.updated_at > noon_rule.updated_at

    def test_dict_round_trip(self, noon_rule):
        restored = AutomationRule.from_dict(noon_rule.to_dict())
        assert restored.same_as(noon_rule)

    def test_naive_timestamps_are_utc(self):
        rule = AutomationRule.from_dict(
            {
                "id": "abc",
                "name": "Legacy",
                "trigger": {"type": "interval", "seconds": 10},
                "capability_id": "mock",
                "action": "ping",
                "created_at": "2025-01-01T08:00:00",
            }
        )
        assert rule.created_at == datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert rule.updated_at == rule.created_at
