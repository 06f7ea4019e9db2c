"""Tests for the automation orchestrator."""

import asyncio
from datetime import datetime, timezone

import pytest

from desk_automation.capabilities import CapabilityRegistry
from desk_automation.capabilities.mock import mock_factory
from desk_automation.core.bus import EventBus
from desk_automation.core.errors import (
    CapabilityNotFound,
    ConfigurationError,
    NotRunning,
    RuleNotFound,
)
from desk_automation.core.notifications import MockNotifier
from desk_automation.core.orchestrator import AutomationOrchestrator, EngineState
from desk_automation.scheduling import (
    AutomationRule,
    ScheduleRegistry,
    SolarEventTrigger,
    TimeOfDayTrigger,
)
from desk_automation.storage import ConfigurationStore, GlobalSettings, MemoryBackend

UTC = timezone.utc


@pytest.fixture
def quiet_clock(clock):
    """Clock parked at 03:17, when no test rule fires on its own."""
    clock.set(datetime(2025, 6, 11, 3, 17, tzinfo=UTC))
    return clock


@pytest.fixture
def events():
    return []


@pytest.fixture
def bus(events):
    bus = EventBus()
    bus.subscribe(events.append)
    return bus


@pytest.fixture
def scheduler(quiet_clock):
    return ScheduleRegistry(clock=quiet_clock)


@pytest.fixture
def engine(store, capabilities, scheduler, notifier, bus):
    return AutomationOrchestrator(
        store,
        capabilities=capabilities,
        scheduler=scheduler,
        notifier=notifier,
        bus=bus,
    )


def event_types(events):
    return [e.type for e in events]


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_registers_enabled_rules(self, engine, store, noon_rule, events):
        disabled = AutomationRule(
            name="Off",
            trigger=TimeOfDayTrigger(9, 0),
            capability_id="mock",
            action="ping",
            enabled=False,
        )
        orphan = AutomationRule(
            name="Orphan",
            trigger=TimeOfDayTrigger(9, 0),
            capability_id="display-brightness",
            action="dim",
        )
        for rule in (noon_rule, disabled, orphan):
            store.add_rule(rule)

        await engine.start()
        try:
            assert engine.state is EngineState.RUNNING
            assert engine.is_running
            assert engine.active_automations == [noon_rule]
            assert engine.scheduler.running
            assert [t["rule_id"] for t in engine.scheduled_tasks_info()] == [noon_rule.id]
            assert "engine.started" in event_types(events)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_clears_everything(self, engine, store, noon_rule, mock_capability, events):
        store.add_rule(noon_rule)
        await engine.start()
        await engine.stop()

        assert engine.state is EngineState.STOPPED
        assert engine.active_automations == []
        assert len(engine.scheduler) == 0
        assert not engine.scheduler.running
        assert mock_capability.cleaned_up
        assert len(engine.capabilities) == 0
        assert event_types(events)[-1] == "engine.stopped"

    @pytest.mark.asyncio
    async def test_second_start_is_noop(self, engine):
        await engine.start()
        await engine.start()
        assert engine.is_running
        await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, engine, events):
        await engine.stop()
        assert engine.state is EngineState.STOPPED
        assert events == []

    @pytest.mark.asyncio
    async def test_configuration_error_aborts_start(self, capabilities, scheduler):
        store = ConfigurationStore(MemoryBackend({"rules": [{"broken": True}]}))
        engine = AutomationOrchestrator(store, capabilities=capabilities, scheduler=scheduler)

        with pytest.raises(ConfigurationError):
            await engine.start()
        assert engine.state is EngineState.STOPPED
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_scheduler_failure_unloads_capabilities(
        self, store, capabilities, quiet_clock, mock_capability
    ):
        class NoLoopScheduler(ScheduleRegistry):
            def start(self, interval=ScheduleRegistry.DEFAULT_INTERVAL):
                raise RuntimeError("no event loop")

        engine = AutomationOrchestrator(
            store, capabilities=capabilities, scheduler=NoLoopScheduler(clock=quiet_clock)
        )

        with pytest.raises(RuntimeError):
            await engine.start()
        assert engine.state is EngineState.STOPPED
        assert len(engine.capabilities) == 0
        assert mock_capability.cleaned_up

    @pytest.mark.asyncio
    async def test_start_applies_location(self, engine, store, quiet_clock):
        store.update_settings(GlobalSettings(latitude=0.0, longitude=0.0, timezone="UTC"))
        sunrise_rule = AutomationRule(
            name="Wake up",
            trigger=SolarEventTrigger.sunrise(),
            capability_id="mock",
            action="ping",
        )
        store.add_rule(sunrise_rule)

        await engine.start()
        try:
            task = engine.scheduler.get(sunrise_rule.id)
            assert task.next_fire_time == datetime(2025, 6, 11, 6, 0, tzinfo=UTC)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_restart(self, engine, store, noon_rule, events):
        store.add_rule(noon_rule)
        await engine.start()
        await engine.restart()
        try:
            assert engine.active_automations == [noon_rule]
            assert event_types(events).count("engine.started") == 2
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_drains_dispatched_actions(self, store, scheduler, noon_rule, noon):
        """Test that a running action completes before capabilities are unloaded."""
        factory = mock_factory("mock", delay=0.05)
        capabilities = CapabilityRegistry({"mock": factory})
        engine = AutomationOrchestrator(store, capabilities=capabilities, scheduler=scheduler)
        store.add_rule(noon_rule)

        await engine.start()
        scheduler.evaluate_and_dispatch(noon)
        await factory.instance.started.wait()
        await engine.stop()

        assert factory.instance.calls == [("set_level", {"level": 0.3})]
        assert factory.instance.cleaned_up


class TestRegistration:
    """Tests for register/unregister/update."""

    def test_missing_capability_not_registered(self, engine, scheduler):
        rule = AutomationRule(
            name="Ghost",
            trigger=TimeOfDayTrigger(8, 0),
            capability_id="display-brightness",
            action="dim",
        )
        with pytest.raises(CapabilityNotFound):
            engine.register_automation(rule)

        assert engine.active_automations == []
        assert not scheduler.has(rule.id)

    def test_register_replaces_same_id(self, engine, noon_rule, events):
        engine.register_automation(noon_rule)
        engine.register_automation(noon_rule.with_changes(name="Again"))

        assert [r.name for r in engine.active_automations] == ["Again"]
        assert event_types(events) == ["automation.registered", "automation.registered"]

    def test_unregister(self, engine, noon_rule, scheduler):
        engine.register_automation(noon_rule)

        assert engine.unregister_automation(noon_rule.id)
        assert not engine.unregister_automation(noon_rule.id)
        assert engine.active_automations == []
        assert not scheduler.has(noon_rule.id)

    @pytest.mark.asyncio
    async def test_update_disables(self, engine, store, noon_rule, scheduler):
        store.add_rule(noon_rule)
        await engine.start()
        try:
            stored = engine.update_automation(noon_rule.with_changes(enabled=False))

            assert not stored.enabled
            assert not store.get_rule(noon_rule.id).enabled
            assert not scheduler.has(noon_rule.id)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_update_registers_new_enabled(self, engine, store, noon_rule, scheduler):
        store.add_rule(noon_rule.with_changes(enabled=False))
        await engine.start()
        try:
            engine.update_automation(noon_rule.with_changes(name="Now active"))
            assert scheduler.has(noon_rule.id)
        finally:
            await engine.stop()

    def test_update_unknown_rule(self, engine, noon_rule):
        with pytest.raises(RuleNotFound):
            engine.update_automation(noon_rule)

    @pytest.mark.asyncio
    async def test_update_missing_capability(self, engine, store, noon_rule):
        store.add_rule(noon_rule)
        await engine.start()
        try:
            with pytest.raises(CapabilityNotFound):
                engine.update_automation(noon_rule.with_changes(capability_id="nope"))
            assert store.get_rule(noon_rule.id).capability_id == "mock"
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_update_after_stop_only_stores(self, engine, store, noon_rule, scheduler):
        """Test that editing a rule on a stopped engine persists it without a capability check."""
        store.add_rule(noon_rule)
        await engine.start()
        await engine.stop()

        stored = engine.update_automation(noon_rule.with_changes(name="Renamed"))

        assert stored.name == "Renamed"
        assert store.get_rule(noon_rule.id).name == "Renamed"
        assert engine.active_automations == []
        assert not scheduler.has(noon_rule.id)

    @pytest.mark.asyncio
    async def test_dispatch_uses_updated_rule(
        self, engine, store, noon_rule, scheduler, mock_capability, noon
    ):
        """Test that a scheduled fire executes the latest version of a rule."""
        store.add_rule(noon_rule)
        await engine.start()
        try:
            engine.update_automation(noon_rule.with_changes(parameters={"level": 0.9}))

            scheduler.evaluate_and_dispatch(noon)
            await settle()

            assert mock_capability.calls == [("set_level", {"level": 0.9})]
            assert engine.get_history()[0].source == "scheduled"
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_sync_automations(self, engine, noon_rule, interval_rule, scheduler):
        engine.register_automation(noon_rule)
        engine.register_automation(interval_rule)

        renamed = noon_rule.with_changes(name="Renamed")
        newcomer = AutomationRule(
            name="New",
            trigger=TimeOfDayTrigger(18, 0),
            capability_id="mock",
            action="ping",
        )
        orphan = AutomationRule(
            name="Orphan",
            trigger=TimeOfDayTrigger(18, 0),
            capability_id="nope",
            action="ping",
        )
        await engine.sync_automations(
            [renamed, interval_rule.with_changes(enabled=False), newcomer, orphan]
        )

        names = sorted(r.name for r in engine.active_automations)
        assert names == ["New", "Renamed"]
        assert not scheduler.has(interval_rule.id)
        assert scheduler.get(noon_rule.id).rule.name == "Renamed"


class TestExecution:
    """Tests for execute_automation and quick actions."""

    @pytest.mark.asyncio
    async def test_success(self, engine, noon_rule, mock_capability, notifier, events):
        assert await engine.execute_automation(noon_rule)

        assert mock_capability.calls == [("set_level", {"level": 0.3})]
        assert notifier.sent == [("success", "Automation executed", "Noon dim")]
        assert event_types(events) == ["automation.executed"]

        record = engine.get_history()[0]
        assert record.success
        assert record.source == "manual"
        assert record.error is None

    @pytest.mark.asyncio
    async def test_failure_never_raises(self, engine, notifier, events):
        rule = AutomationRule(
            name="Too bright",
            trigger=TimeOfDayTrigger(8, 0),
            capability_id="mock",
            action="set_level",
            parameters={"level": 7},
        )
        assert not await engine.execute_automation(rule)

        level, title, message = notifier.sent[0]
        assert (level, title) == ("error", "Automation failed")
        assert message.startswith("Too bright: ")
        assert event_types(events) == ["automation.failed"]
        assert not engine.get_history()[0].success

    @pytest.mark.asyncio
    async def test_missing_capability_reported(self, engine, notifier):
        rule = AutomationRule(
            name="Ghost",
            trigger=TimeOfDayTrigger(8, 0),
            capability_id="nope",
            action="ping",
        )
        assert not await engine.execute_automation(rule)
        assert notifier.sent[0][0] == "error"

    @pytest.mark.asyncio
    async def test_notifications_disabled(self, engine, store, noon_rule, notifier):
        store.update_settings(GlobalSettings(notifications_enabled=False))
        assert await engine.execute_automation(noon_rule)
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_broken_notifier_ignored(self, store, capabilities, scheduler, noon_rule):
        engine = AutomationOrchestrator(
            store,
            capabilities=capabilities,
            scheduler=scheduler,
            notifier=MockNotifier(fail=True),
        )
        assert await engine.execute_automation(noon_rule)

    @pytest.mark.asyncio
    async def test_history_filter_and_limit(self, engine, noon_rule, interval_rule):
        for _ in range(3):
            await engine.execute_automation(noon_rule)
        await engine.execute_automation(interval_rule)

        assert engine.get_history()[0].rule_id == interval_rule.id
        assert len(engine.get_history(rule_id=noon_rule.id)) == 3
        assert len(engine.get_history(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_quick_action_requires_running(self, engine):
        with pytest.raises(NotRunning):
            await engine.execute_quick_action("mock", "ping")

    @pytest.mark.asyncio
    async def test_quick_action(self, engine, mock_capability):
        await engine.start()
        try:
            await engine.execute_quick_action("mock", "set_mode", {"mode": "manual"})
            with pytest.raises(CapabilityNotFound):
                await engine.execute_quick_action("nope", "ping")
        finally:
            await engine.stop()

        assert mock_capability.calls == [("set_mode", {"mode": "manual"})]


class TestManagement:
    """Tests for store-backed management calls."""

    @pytest.mark.asyncio
    async def test_add_while_running(self, engine, store, noon_rule):
        await engine.start()
        try:
            engine.add_automation(noon_rule)
            assert store.get_rule(noon_rule.id) == noon_rule
            assert engine.active_automations == [noon_rule]
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_add_missing_capability_not_stored(self, engine, store):
        rule = AutomationRule(
            name="Ghost",
            trigger=TimeOfDayTrigger(8, 0),
            capability_id="nope",
            action="ping",
        )
        await engine.start()
        try:
            with pytest.raises(CapabilityNotFound):
                engine.add_automation(rule)
            assert store.rules == []
        finally:
            await engine.stop()

    def test_add_while_stopped_only_stores(self, engine, store, noon_rule):
        engine.add_automation(noon_rule)
        assert store.rules == [noon_rule]
        assert engine.active_automations == []

    @pytest.mark.asyncio
    async def test_toggle_and_remove(self, engine, store, noon_rule, scheduler):
        store.add_rule(noon_rule)
        await engine.start()
        try:
            assert not engine.toggle_automation(noon_rule.id).enabled
            assert not scheduler.has(noon_rule.id)

            assert engine.toggle_automation(noon_rule.id).enabled
            assert scheduler.has(noon_rule.id)

            engine.remove_automation(noon_rule.id)
            assert store.rules == []
            assert engine.active_automations == []
        finally:
            await engine.stop()

    def test_toggle_while_stopped(self, engine, store, noon_rule):
        store.add_rule(noon_rule)
        assert not engine.toggle_automation(noon_rule.id).enabled
        assert not store.get_rule(noon_rule.id).enabled

    def test_remove_unknown(self, engine):
        with pytest.raises(RuleNotFound):
            engine.remove_automation("nope")

    def test_set_location(self, engine, store, backend, scheduler):
        sunset_rule = AutomationRule(
            name="Dusk",
            trigger=SolarEventTrigger.sunset(),
            capability_id="mock",
            action="ping",
        )
        engine.register_automation(sunset_rule)
        assert scheduler.get(sunset_rule.id).next_fire_time is None

        settings = engine.set_location(0.0, 0.0)

        assert settings.coordinates == (0.0, 0.0)
        assert backend.read()["settings"]["latitude"] == 0.0
        assert scheduler.get(sunset_rule.id).next_fire_time is not None

    def test_set_location_out_of_range(self, engine):
        with pytest.raises(ValueError):
            engine.set_location(123.0, 0.0)

    def test_capability_accessors(self, engine):
        assert [d.id for d in engine.available_capabilities()] == ["mock"]
        assert engine.capability_info("mock").display_name == "Mock Capability"
        assert engine.capability_info("nope") is None
