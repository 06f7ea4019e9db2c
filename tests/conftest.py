"""Shared fixtures for desk-automation tests."""

import logging
from datetime import datetime, timezone

import pytest

from desk_automation.capabilities import CapabilityRegistry, MockCapability
from desk_automation.core.notifications import MockNotifier
from desk_automation.scheduling import AutomationRule, IntervalTrigger, TimeOfDayTrigger
from desk_automation.storage import ConfigurationStore, MemoryBackend

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


class FakeClock:
    """Settable clock for the schedule registry."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def noon():
    """A Wednesday at 12:00:00 UTC."""
    return datetime(2025, 6, 11, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(noon):
    return FakeClock(noon)


@pytest.fixture
def mock_capability():
    return MockCapability()


@pytest.fixture
def capabilities(mock_capability):
    """Registry with a single discovered mock capability."""
    registry = CapabilityRegistry({"mock": lambda: mock_capability})
    registry.discover()
    return registry


@pytest.fixture
def notifier():
    return MockNotifier()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return ConfigurationStore(backend)


@pytest.fixture
def noon_rule():
    return AutomationRule(
        name="Noon dim",
        trigger=TimeOfDayTrigger(12, 0),
        capability_id="mock",
        action="set_level",
        parameters={"level": 0.3},
    )


@pytest.fixture
def interval_rule():
    return AutomationRule(
        name="Heartbeat",
        trigger=IntervalTrigger(0.1),
        capability_id="mock",
        action="ping",
    )
