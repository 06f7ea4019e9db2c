#!/usr/bin/env python3
"""
Quick example demonstrating desk-automation basic usage.

Runs against a mock capability and an in-memory store, so no hardware or
configuration file is needed.

Run with: PYTHONPATH=src python3 example.py
"""

import asyncio

from desk_automation import AutomationOrchestrator, AutomationRule, ConfigurationStore, EventBus
from desk_automation.capabilities import CapabilityRegistry, MockCapability
from desk_automation.core.notifications import MockNotifier
from desk_automation.scheduling import IntervalTrigger, SolarEventTrigger
from desk_automation.storage import MemoryBackend


async def main() -> None:
    print("=" * 60)
    print("desk-automation Example")
    print("=" * 60)

    # 1. Engine components
    print("\n1. Creating engine components...")
    lamp = MockCapability("lamp")
    store = ConfigurationStore(MemoryBackend())
    bus = EventBus()
    notifier = MockNotifier()
    engine = AutomationOrchestrator(
        store,
        capabilities=CapabilityRegistry({"lamp": lambda: lamp}),
        notifier=notifier,
        bus=bus,
    )
    bus.subscribe(lambda event: print(f"   event: {event.type}"))
    print("   ✓ Store, registry and orchestrator created")

    # 2. Rules
    print("\n2. Adding automation rules...")
    heartbeat = AutomationRule(
        name="Heartbeat",
        trigger=IntervalTrigger(0.2),
        capability_id="lamp",
        action="ping",
    )
    evening = AutomationRule(
        name="Evening glow",
        trigger=SolarEventTrigger.sunset(-30),
        capability_id="lamp",
        action="set_level",
        parameters={"level": 0.6},
    )
    engine.add_automation(heartbeat)
    engine.add_automation(evening)
    print(f"   ✓ {len(store.rules)} rules stored")

    # 3. Start
    print("\n3. Starting engine...")
    await engine.start()
    engine.set_location(45.46, 9.19)
    for task in engine.scheduled_tasks_info():
        print(f"   {task['name']:<14} {task['trigger']:<24} next: {task['next_fire_time']}")

    # 4. Let the interval trigger fire a few times
    print("\n4. Waiting for the heartbeat...")
    await asyncio.sleep(0.7)

    # 5. Manual execution and quick action
    print("\n5. Running actions directly...")
    await engine.execute_automation(evening)
    await engine.execute_quick_action("lamp", "set_mode", {"mode": "manual"})
    print(f"   ✓ Lamp received {len(lamp.calls)} calls")

    # 6. History
    print("\n6. Execution history (newest first):")
    for record in engine.get_history(limit=5):
        status = "ok" if record.success else f"failed: {record.error}"
        print(f"   {record.rule_name:<14} {record.source:<9} {status}")

    await engine.stop()
    print(f"\n   Notifications sent: {len(notifier.sent)}")

    print("\n" + "=" * 60)
    print("Example complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
