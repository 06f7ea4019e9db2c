"""
Schedule registry - owns scheduled tasks and the periodic evaluation loop.

Handles task management, trigger evaluation and fire-and-forget dispatch.
"""

import asyncio
import logging
import threading
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, Optional, Set

from .evaluators import TriggerEvaluator
from .models import AutomationRule, ScheduledAction, ScheduledTask, SolarEventTrigger
from .solar import SolarTimeCalculator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ScheduleRegistry:
    """
    Registry of scheduled automation tasks.

    Responsibilities:
    - Add/update/remove tasks keyed by rule id
    - Keep per-task bookkeeping (last fire, next solar fire)
    - Run the periodic evaluation loop
    - Dispatch fired actions as independent asyncio tasks

    The task map is guarded by a lock shared by the evaluation pass and the
    management calls, so callers on other threads are serialized with the
    loop. Dispatched actions run outside the lock.
    """

    DEFAULT_INTERVAL = 1.0  # seconds between evaluation passes
    MAX_INTERVAL = 60.0  # time-of-day matching needs a sub-minute cadence

    def __init__(
        self,
        evaluator: Optional[TriggerEvaluator] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._evaluator = evaluator or TriggerEvaluator()
        self._clock: Clock = clock or _local_now
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.RLock()

        self._loop_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def evaluator(self) -> TriggerEvaluator:
        return self._evaluator

    def now(self) -> datetime:
        """Current time according to the registry's clock."""
        return self._clock()

    def set_location(
        self,
        latitude: float,
        longitude: float,
        tz: Optional[tzinfo] = None,
    ) -> None:
        """
        Configure coordinates for solar triggers.

        Recomputes next_fire_time for every solar-triggered task.
        """
        with self._lock:
            self._evaluator.set_solar_calculator(
                SolarTimeCalculator(latitude, longitude, tz)
            )
            logger.info(f"Solar calculator updated with location: {latitude}, {longitude}")
            self._refresh_solar_times()

    def clear_location(self) -> None:
        """Forget coordinates; solar triggers stop firing."""
        with self._lock:
            self._evaluator.set_solar_calculator(None)
            self._refresh_solar_times()

    # =========================================================================
    # Task Management
    # =========================================================================

    def add(self, rule: AutomationRule, action: ScheduledAction) -> None:
        """
        Schedule a rule.

        Replaces any task with the same rule id (bookkeeping is reset).

        Args:
            rule: The automation rule
            action: Zero-argument coroutine function run when the rule fires
        """
        with self._lock:
            task = ScheduledTask(rule=rule, action=action)
            task.next_fire_time = self._evaluator.next_fire_time(rule.trigger, self.now())
            self._tasks[rule.id] = task
        logger.info(f"Scheduled task: {rule.name}")

    def update(self, rule: AutomationRule) -> bool:
        """
        Update the rule of an existing task.

        Keeps the bound action and last_fire_time; recomputes the solar
        next_fire_time.

        Returns:
            True if the task existed
        """
        with self._lock:
            existing = self._tasks.get(rule.id)
            if existing is None:
                return False

            self._tasks[rule.id] = ScheduledTask(
                rule=rule,
                action=existing.action,
                last_fire_time=existing.last_fire_time,
                next_fire_time=self._evaluator.next_fire_time(rule.trigger, self.now()),
            )
        logger.debug(f"Updated scheduled task: {rule.name}")
        return True

    def remove(self, rule_id: str) -> bool:
        """
        Remove a scheduled task.

        Returns:
            True if a task was removed
        """
        with self._lock:
            task = self._tasks.pop(rule_id, None)
        if task is None:
            return False
        logger.info(f"Unscheduled task: {task.rule.name}")
        return True

    def clear(self) -> None:
        """Remove all scheduled tasks."""
        with self._lock:
            self._tasks.clear()
        logger.info("All scheduled tasks cleared")

    def has(self, rule_id: str) -> bool:
        with self._lock:
            return rule_id in self._tasks

    def get(self, rule_id: str) -> Optional[ScheduledTask]:
        """Get a snapshot copy of a task's state."""
        with self._lock:
            task = self._tasks.get(rule_id)
            if task is None:
                return None
            return ScheduledTask(
                rule=task.rule,
                action=task.action,
                last_fire_time=task.last_fire_time,
                next_fire_time=task.next_fire_time,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def list_debug_info(self) -> List[Dict[str, Any]]:
        """
        Describe all scheduled tasks.

        Returns:
            List of dicts with rule_id, name, trigger, last_fire_time and
            next_fire_time (datetimes or None)
        """
        with self._lock:
            return [
                {
                    "rule_id": task.rule.id,
                    "name": task.rule.name,
                    "trigger": task.rule.trigger.display_name,
                    "last_fire_time": task.last_fire_time,
                    "next_fire_time": task.next_fire_time,
                }
                for task in self._tasks.values()
            ]

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_and_dispatch(self, now: Optional[datetime] = None) -> List[str]:
        """
        Evaluate every enabled task against one snapshot of now.

        Fired tasks get their bookkeeping updated first; their actions are
        then spawned as asyncio tasks and not awaited. Must be called from a
        running event loop. An error while evaluating one task is logged and
        does not affect the others.

        Args:
            now: Evaluation instant (default: the registry clock)

        Returns:
            IDs of the rules that fired
        """
        if now is None:
            now = self.now()

        fired: List[ScheduledTask] = []
        with self._lock:
            for rule_id, task in list(self._tasks.items()):
                if not task.rule.enabled:
                    continue
                try:
                    if self._evaluator.solar_target_stale(task, now):
                        self._roll_solar_target(task, now)
                    if not self._evaluator.should_fire(task, now):
                        continue
                    task.last_fire_time = now
                    if isinstance(task.rule.trigger, SolarEventTrigger):
                        task.next_fire_time = self._evaluator.next_fire_time(
                            task.rule.trigger, now
                        )
                except Exception as e:
                    logger.error(f"Error evaluating task {rule_id}: {e}", exc_info=True)
                    continue
                fired.append(task)

        for task in fired:
            logger.info(f"Triggered: {task.rule.name}")
            self._spawn(task)

        return [task.rule.id for task in fired]

    def _roll_solar_target(self, task: ScheduledTask, now: datetime) -> None:
        missed = task.next_fire_time
        task.next_fire_time = self._evaluator.next_fire_time(task.rule.trigger, now)
        if missed is not None:
            logger.warning(
                f"Missed {task.rule.trigger.display_name} for {task.rule.name} "
                f"at {missed.isoformat()}, next at {task.next_fire_time}"
            )

    def _spawn(self, task: ScheduledTask) -> None:
        dispatched = asyncio.get_running_loop().create_task(
            self._run_action(task.rule, task.action),
            name=f"automation:{task.rule.id}",
        )
        self._inflight.add(dispatched)
        dispatched.add_done_callback(self._inflight.discard)

    async def _run_action(self, rule: AutomationRule, action: ScheduledAction) -> None:
        try:
            await action()
        except Exception as e:
            logger.error(f"Action for {rule.name} failed: {e}", exc_info=True)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def start(self, interval: float = DEFAULT_INTERVAL) -> None:
        """
        Start the periodic evaluation loop on the running event loop.

        Args:
            interval: Seconds between passes, must be in (0, 60)

        Raises:
            ValueError: If interval is out of range
        """
        if not 0 < interval < self.MAX_INTERVAL:
            raise ValueError(
                f"Check interval must be between 0 and {self.MAX_INTERVAL}s, got {interval}"
            )
        if self.running:
            logger.warning("Scheduler already running")
            return

        self._loop_task = asyncio.get_running_loop().create_task(
            self._run(interval), name="scheduler-loop"
        )
        logger.info(f"Scheduler started with {len(self)} tasks")

    async def stop(self) -> None:
        """
        Cancel the evaluation loop.

        Dispatched actions keep running; use drain() to wait for them.
        """
        loop_task, self._loop_task = self._loop_task, None
        if loop_task is None:
            return
        loop_task.cancel()
        try:
            await loop_task
        except asyncio.CancelledError:
            pass
        logger.info("Scheduler stopped")

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for dispatched actions to finish.

        Returns:
            True if nothing is left running
        """
        pending = set(self._inflight)
        if not pending:
            return True
        logger.debug(f"Waiting for {len(pending)} in-flight actions")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} actions still running after drain timeout")
        return not still_running

    async def _run(self, interval: float) -> None:
        while True:
            try:
                self.evaluate_and_dispatch()
            except Exception as e:
                logger.error(f"Scheduler pass failed: {e}", exc_info=True)
            await asyncio.sleep(interval)

    def _refresh_solar_times(self) -> None:
        now = self.now()
        for task in self._tasks.values():
            if isinstance(task.rule.trigger, SolarEventTrigger):
                task.next_fire_time = self._evaluator.next_fire_time(task.rule.trigger, now)
