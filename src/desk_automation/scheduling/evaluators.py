"""
Trigger evaluators for the scheduler.

Decides whether a scheduled task should fire at a given instant. Evaluation
is read-only: the registry applies bookkeeping updates when a task fires.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from .models import (
    ScheduledTask,
    TriggerConfig,
    TimeOfDayTrigger,
    SolarEventTrigger,
    IntervalTrigger,
)
from .solar import SolarTimeCalculator

logger = logging.getLogger(__name__)

# A solar task fires when now is in [next_fire_time, next_fire_time + window)
SOLAR_FIRE_WINDOW = timedelta(seconds=2)

# A previous fire this close to next_fire_time counts as the same event
SOLAR_DUPLICATE_GUARD = timedelta(seconds=60)


class TriggerEvaluator:
    """
    Evaluates triggers for scheduled tasks.

    Uses an optional solar calculator for sunrise/sunset triggers; without
    one, solar triggers never fire.

    TimeOfDay matching compares hour and minute only, so it is idempotent
    within a minute but requires the caller to evaluate more often than
    once per minute, otherwise a fire can be skipped.
    """

    def __init__(self, solar: Optional[SolarTimeCalculator] = None) -> None:
        self._solar = solar

    @property
    def solar(self) -> Optional[SolarTimeCalculator]:
        return self._solar

    def set_solar_calculator(self, solar: Optional[SolarTimeCalculator]) -> None:
        self._solar = solar

    def should_fire(self, task: ScheduledTask, now: datetime) -> bool:
        """
        Evaluate a task's trigger.

        Args:
            task: The task to check (not modified)
            now: Current time (timezone-aware)

        Returns:
            True if the task should fire now
        """
        trigger = task.rule.trigger

        if isinstance(trigger, TimeOfDayTrigger):
            return self._check_time_of_day(trigger, task.last_fire_time, now)
        elif isinstance(trigger, SolarEventTrigger):
            return self._check_solar(task, now)
        elif isinstance(trigger, IntervalTrigger):
            return self._check_interval(trigger, task.last_fire_time, now)
        else:
            logger.warning(f"Unknown trigger type: {type(trigger)}")
            return False

    def next_fire_time(self, trigger: TriggerConfig, now: datetime) -> Optional[datetime]:
        """
        Compute the next solar fire time strictly after now.

        Returns:
            Today's event if it has not passed yet, else tomorrow's; None for
            non-solar triggers, without a calculator, or when neither day has
            the event (polar day/night)
        """
        if not isinstance(trigger, SolarEventTrigger) or self._solar is None:
            return None

        today = self._solar.event(trigger.event, now, trigger.offset_minutes)
        if today is not None and today > now:
            return today

        tomorrow = self._solar.event(
            trigger.event, now + timedelta(days=1), trigger.offset_minutes
        )
        if tomorrow is not None and tomorrow > now:
            return tomorrow
        return None

    # =========================================================================
    # Trigger Implementations
    # =========================================================================

    def _check_time_of_day(
        self,
        trigger: TimeOfDayTrigger,
        last_fire: Optional[datetime],
        now: datetime,
    ) -> bool:
        """Fire on an exact hour/minute match, once per calendar day."""
        if not trigger.fires_on(now.isoweekday()):
            return False

        if now.hour != trigger.hour or now.minute != trigger.minute:
            return False

        if last_fire is not None:
            last = last_fire.astimezone(now.tzinfo) if now.tzinfo else last_fire
            if (
                last.date() == now.date()
                and last.hour == now.hour
                and last.minute == now.minute
            ):
                return False

        return True

    def solar_target_stale(self, task: ScheduledTask, now: datetime) -> bool:
        """
        Check whether a solar task's next_fire_time needs recomputing.

        True when a calculator is set and the target is missing (polar day
        or night when it was computed) or its fire window has already passed.
        """
        if self._solar is None or not isinstance(task.rule.trigger, SolarEventTrigger):
            return False
        target = task.next_fire_time
        return target is None or now - target >= SOLAR_FIRE_WINDOW

    def _check_solar(self, task: ScheduledTask, now: datetime) -> bool:
        """Fire inside the short window after the precomputed event time."""
        if self._solar is None:
            return False

        target = task.next_fire_time
        if target is None:
            return False

        elapsed = now - target
        if elapsed < timedelta(0) or elapsed >= SOLAR_FIRE_WINDOW:
            return False

        if task.last_fire_time is not None:
            if abs(task.last_fire_time - target) < SOLAR_DUPLICATE_GUARD:
                return False

        return True

    def _check_interval(
        self,
        trigger: IntervalTrigger,
        last_fire: Optional[datetime],
        now: datetime,
    ) -> bool:
        """Fire immediately the first time, then once per elapsed period."""
        if last_fire is None:
            return True
        return now - last_fire >= trigger.period
