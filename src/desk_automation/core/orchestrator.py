"""
Automation orchestrator - ties rules, scheduler and capabilities together.

Owns the engine lifecycle, keeps the active rule set in sync with the
schedule, executes automations and reports their results.
"""

import logging
from collections import deque
from dataclasses import replace
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from desk_automation.capabilities.base import CapabilityDescriptor
from desk_automation.capabilities.registry import CapabilityRegistry
from desk_automation.core.bus import Event, EventBus
from desk_automation.core.errors import (
    AlreadyRunning,
    CapabilityNotFound,
    ConfigurationError,
    NotRunning,
)
from desk_automation.core.notifications import LoggingNotifier, Notifier
from desk_automation.scheduling.models import AutomationRule, ExecutionRecord, ScheduledAction
from desk_automation.scheduling.registry import ScheduleRegistry
from desk_automation.storage.settings import GlobalSettings
from desk_automation.storage.store import ConfigurationStore

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Lifecycle states of the orchestrator."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class AutomationOrchestrator:
    """
    Top-level automation engine.

    Responsibilities:
    - Start/stop the scheduler and capabilities
    - Register enabled rules with the scheduler
    - Execute automations (scheduled and manual) and notify the results
    - Keep an execution history and publish engine events on the bus

    All collaborators are injected; defaults are built when omitted.

    Example:
        store = ConfigurationStore(YamlFileBackend(path))
        engine = AutomationOrchestrator(store)
        await engine.start()
        ...
        await engine.stop()
    """

    HISTORY_SIZE = 100  # Number of executions to keep in history
    SOURCE = "orchestrator"

    def __init__(
        self,
        store: ConfigurationStore,
        capabilities: Optional[CapabilityRegistry] = None,
        scheduler: Optional[ScheduleRegistry] = None,
        notifier: Optional[Notifier] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._capabilities = capabilities if capabilities is not None else CapabilityRegistry()
        self._scheduler = scheduler if scheduler is not None else ScheduleRegistry()
        self._notifier = notifier if notifier is not None else LoggingNotifier()
        self._bus = bus if bus is not None else EventBus()

        self._state = EngineState.STOPPED
        self._active: Dict[str, AutomationRule] = {}
        self._history: Deque[ExecutionRecord] = deque(maxlen=self.HISTORY_SIZE)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    @property
    def active_automations(self) -> List[AutomationRule]:
        return list(self._active.values())

    @property
    def store(self) -> ConfigurationStore:
        return self._store

    @property
    def capabilities(self) -> CapabilityRegistry:
        return self._capabilities

    @property
    def scheduler(self) -> ScheduleRegistry:
        return self._scheduler

    @property
    def bus(self) -> EventBus:
        return self._bus

    def available_capabilities(self) -> List[CapabilityDescriptor]:
        return self._capabilities.list_descriptors()

    def capability_info(self, capability_id: str) -> Optional[CapabilityDescriptor]:
        return self._capabilities.descriptor(capability_id)

    def scheduled_tasks_info(self) -> List[Dict[str, Any]]:
        return self._scheduler.list_debug_info()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Start the engine.

        Loads the configuration, discovers capabilities, applies the
        configured location, starts the scheduler and registers every
        enabled rule. A rule whose capability is missing is logged and
        skipped.

        Raises:
            ConfigurationError: If the configuration cannot be loaded
            AlreadyRunning: If a start or stop is in progress
        """
        if self._state is EngineState.RUNNING:
            logger.warning("Engine already running")
            return
        if self._state is not EngineState.STOPPED:
            raise AlreadyRunning()

        logger.info("Starting automation engine")
        self._state = EngineState.STARTING

        try:
            _, settings = self._store.load()
        except ConfigurationError as e:
            logger.error(f"Failed to start engine: {e}")
            self._state = EngineState.STOPPED
            raise

        try:
            self._capabilities.discover()
        except Exception as e:
            logger.error(f"Capability discovery failed: {e}", exc_info=True)

        self._apply_location(settings)

        try:
            self._scheduler.start(settings.check_interval_seconds)
        except Exception:
            await self._capabilities.unload_all()
            self._state = EngineState.STOPPED
            raise

        for rule in self._store.enabled_rules():
            try:
                self.register_automation(rule)
            except CapabilityNotFound as e:
                logger.warning(f"Skipping automation {rule.name}: {e}")

        self._state = EngineState.RUNNING
        logger.info(f"Engine started with {len(self._active)} automations")
        self._publish("engine.started", payload={"automations": len(self._active)})

    async def stop(self) -> None:
        """
        Stop the engine.

        Cancels the scheduler loop, waits for dispatched actions, unloads
        capabilities and clears the active rules. No-op if not running.
        """
        if self._state is not EngineState.RUNNING:
            logger.warning("Engine not running")
            return

        logger.info("Stopping automation engine")
        self._state = EngineState.STOPPING
        try:
            await self._scheduler.stop()
            await self._scheduler.drain()
            await self._capabilities.unload_all()
        finally:
            self._scheduler.clear()
            self._active.clear()
            self._state = EngineState.STOPPED

        logger.info("Engine stopped")
        self._publish("engine.stopped")

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    def _apply_location(self, settings: GlobalSettings) -> None:
        coordinates = settings.coordinates
        if coordinates is None:
            self._scheduler.clear_location()
            logger.info("No location configured, solar triggers are inactive")
            return

        try:
            tz = settings.tzinfo()
        except Exception as e:
            logger.warning(f"Invalid timezone {settings.timezone!r}, using local time: {e}")
            tz = None
        self._scheduler.set_location(coordinates[0], coordinates[1], tz)

    # =========================================================================
    # Registration
    # =========================================================================

    def register_automation(self, rule: AutomationRule) -> None:
        """
        Install a rule in the scheduler and the active list.

        Replaces an active rule with the same id.

        Raises:
            CapabilityNotFound: If the rule's capability is not loaded
        """
        if not self._capabilities.has(rule.capability_id):
            raise CapabilityNotFound(rule.capability_id)

        self._scheduler.add(rule, self._dispatcher(rule.id))
        self._active[rule.id] = rule
        logger.info(f"Registered automation: {rule.name}")
        self._publish("automation.registered", rule_id=rule.id)

    def unregister_automation(self, rule_id: str) -> bool:
        """
        Remove a rule from the scheduler and the active list.

        Returns:
            True if the rule was registered
        """
        scheduled = self._scheduler.remove(rule_id)
        rule = self._active.pop(rule_id, None)
        if not scheduled and rule is None:
            return False
        logger.info(f"Unregistered automation: {rule.name if rule else rule_id}")
        self._publish("automation.unregistered", rule_id=rule_id)
        return True

    def update_automation(self, rule: AutomationRule) -> AutomationRule:
        """
        Persist a changed rule and apply it to the schedule.

        Enabled rules are updated in place (or registered if not active yet);
        disabled rules are unregistered. While stopped the rule is only
        persisted and takes effect on the next start().

        Returns:
            The stored rule

        Raises:
            CapabilityNotFound: If an enabled rule targets a missing capability
            RuleNotFound: If the rule is not in the store
        """
        if not self.is_running:
            return self._store.update_rule(rule)

        if rule.enabled and not self._capabilities.has(rule.capability_id):
            raise CapabilityNotFound(rule.capability_id)

        stored = self._store.update_rule(rule)

        if not stored.enabled:
            self.unregister_automation(stored.id)
        elif self._scheduler.update(stored):
            self._active[stored.id] = stored
            logger.info(f"Updated automation: {stored.name}")
        else:
            self.register_automation(stored)
        return stored

    async def sync_automations(self, rules: Iterable[AutomationRule]) -> None:
        """
        Reconcile the active set with a list of rules.

        Active rules that are missing or disabled in `rules` are removed,
        active ones are updated, new enabled ones are registered. Failures
        are logged per rule.
        """
        enabled = {rule.id: rule for rule in rules if rule.enabled}

        for rule_id in list(self._active):
            if rule_id not in enabled:
                self.unregister_automation(rule_id)

        for rule in enabled.values():
            if rule.id in self._active:
                self._scheduler.update(rule)
                self._active[rule.id] = rule
                continue
            try:
                self.register_automation(rule)
            except CapabilityNotFound as e:
                logger.error(f"Failed to register automation {rule.name}: {e}")

    def _dispatcher(self, rule_id: str) -> ScheduledAction:
        async def dispatch() -> None:
            # Resolve at fire time so updates made after registration apply
            rule = self._active.get(rule_id)
            if rule is None or not rule.enabled:
                logger.debug(f"Skipping dispatch of inactive rule {rule_id}")
                return
            await self.execute_automation(rule, source="scheduled")

        return dispatch

    # =========================================================================
    # Store-backed Management
    # =========================================================================

    def add_automation(self, rule: AutomationRule) -> None:
        """
        Store a new rule and register it when the engine is running.

        Raises:
            CapabilityNotFound: If running and the enabled rule's capability
                is not loaded (nothing is stored)
        """
        if self.is_running and rule.enabled and not self._capabilities.has(rule.capability_id):
            raise CapabilityNotFound(rule.capability_id)

        self._store.add_rule(rule)
        if self.is_running and rule.enabled:
            self.register_automation(rule)

    def remove_automation(self, rule_id: str) -> None:
        """
        Delete a stored rule and unregister it.

        Raises:
            RuleNotFound: If the rule is not in the store
        """
        self._store.delete_rule(rule_id)
        self.unregister_automation(rule_id)

    def toggle_automation(self, rule_id: str) -> AutomationRule:
        """
        Flip a stored rule's enabled flag and apply it.

        Raises:
            RuleNotFound: If the rule is not in the store
            CapabilityNotFound: If enabling a rule whose capability is missing
        """
        rule = self._store.get_rule(rule_id)
        return self.update_automation(rule.with_changes(enabled=not rule.enabled))

    def set_location(self, latitude: float, longitude: float) -> GlobalSettings:
        """
        Persist coordinates and recompute solar fire times.

        Raises:
            ValueError: If the coordinates are out of range
        """
        settings = replace(self._store.settings, latitude=latitude, longitude=longitude)
        self._store.update_settings(settings)
        self._apply_location(settings)
        return settings

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_automation(self, rule: AutomationRule, source: str = "manual") -> bool:
        """
        Execute a rule's action now.

        Failures are logged, notified and recorded; they never propagate.

        Args:
            rule: The rule to execute
            source: "scheduled" or "manual"

        Returns:
            True if the action succeeded
        """
        logger.info(f"Executing automation: {rule.name}")
        start_time = datetime.now(UTC)
        error: Optional[str] = None

        try:
            await self._capabilities.invoke(rule.capability_id, rule.action, rule.parameters)
            success = True
        except Exception as e:
            success = False
            error = str(e)
            logger.error(f"Automation {rule.name} failed: {e}")

        duration_ms = int((datetime.now(UTC) - start_time).total_seconds() * 1000)
        self._history.append(
            ExecutionRecord(
                rule_id=rule.id,
                rule_name=rule.name,
                capability_id=rule.capability_id,
                action=rule.action,
                source=source,
                success=success,
                error=error,
                timestamp=start_time,
                duration_ms=duration_ms,
            )
        )

        self._publish(
            "automation.executed" if success else "automation.failed",
            rule_id=rule.id,
            payload={"source": source, "error": error, "duration_ms": duration_ms},
        )

        await self._notify(rule, error)
        return success

    async def execute_quick_action(
        self,
        capability_id: str,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Run one capability action directly (not a stored rule).

        Raises:
            NotRunning: If the engine is not running
            CapabilityNotFound: If the capability is not loaded
            ExecutionFailed: If the capability raised
        """
        if not self.is_running:
            raise NotRunning()
        logger.info(f"Executing quick action: {action} on {capability_id}")
        await self._capabilities.invoke(capability_id, action, params)

    async def _notify(self, rule: AutomationRule, error: Optional[str]) -> None:
        if not self._store.settings.notifications_enabled:
            return
        try:
            if error is None:
                await self._notifier.send_success("Automation executed", rule.name)
            else:
                await self._notifier.send_error("Automation failed", f"{rule.name}: {error}")
        except Exception as e:
            logger.warning(f"Notification delivery failed: {e}")

    # =========================================================================
    # History / Events
    # =========================================================================

    def get_history(
        self,
        rule_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[ExecutionRecord]:
        """
        Get execution history.

        Args:
            rule_id: Filter by rule (optional)
            limit: Maximum entries to return

        Returns:
            List of ExecutionRecord (newest first)
        """
        result = []
        for record in reversed(self._history):
            if rule_id and record.rule_id != rule_id:
                continue
            result.append(record)
            if len(result) >= limit:
                break
        return result

    def _publish(
        self,
        event_type: str,
        rule_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._bus.publish(
            Event(
                type=event_type,
                source=self.SOURCE,
                rule_id=rule_id,
                payload=payload or {},
            )
        )
