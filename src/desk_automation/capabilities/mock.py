"""
Mock capability for testing.

Records executed actions and can be configured to be incompatible, to fail,
or to take time, without touching any hardware.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

from desk_automation.core.values import ParameterValue, unwrap_parameters

from .base import (
    ActionSpec,
    Capability,
    CompatibilityResult,
    ParameterSpec,
    ParameterType,
    ParameterValidation,
)


class MockCapability(Capability):
    """
    Mock capability for testing.

    Actions:
    - set_level: level (float 0..1, required)
    - set_mode: mode (selection, default "auto")
    - ping: no parameters

    Usage:
        mock = MockCapability()
        await mock.execute("set_level", {"level": ParameterValue.of(0.5)})
        assert mock.calls == [("set_level", {"level": 0.5})]
    """

    display_name = "Mock Capability"
    version = "1.0.0"
    description = "Records actions instead of executing them"
    actions = [
        ActionSpec(
            id="set_level",
            display_name="Set Level",
            parameters=[
                ParameterSpec(
                    id="level",
                    display_name="Level",
                    type=ParameterType.FLOAT,
                    validation=ParameterValidation(min=0.0, max=1.0),
                )
            ],
        ),
        ActionSpec(
            id="set_mode",
            display_name="Set Mode",
            parameters=[
                ParameterSpec(
                    id="mode",
                    display_name="Mode",
                    type=ParameterType.SELECTION,
                    default="auto",
                    validation=ParameterValidation(options=["auto", "manual"]),
                )
            ],
        ),
        ActionSpec(id="ping", display_name="Ping"),
    ]

    def __init__(
        self,
        identifier: str = "mock",
        compatible: bool = True,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.identifier = identifier
        self.compatible = compatible
        self.fail = fail
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.cleanup_count = 0
        self.started = asyncio.Event()

    @property
    def cleaned_up(self) -> bool:
        return self.cleanup_count > 0

    def clear(self) -> None:
        """Clear recorded calls."""
        self.calls.clear()

    async def execute(self, action: str, params: Mapping[str, ParameterValue]) -> None:
        validated = self.validate(action, params)
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.identifier} failed to run {action}")
        self.calls.append((action, unwrap_parameters(validated)))

    def compatibility(self) -> CompatibilityResult:
        if self.compatible:
            return CompatibilityResult.ok()
        return CompatibilityResult.incompatible(["mock hardware missing"])

    async def cleanup(self) -> None:
        self.cleanup_count += 1


def mock_factory(
    identifier: str = "mock",
    **options: Any,
) -> "MockFactory":
    """Build a factory that always returns the same MockCapability instance."""
    return MockFactory(MockCapability(identifier, **options))


class MockFactory:
    """Zero-argument constructor returning a fixed instance (see mock_factory)."""

    def __init__(self, instance: MockCapability) -> None:
        self.instance = instance
        self.calls = 0
        self.error: Optional[Exception] = None

    def __call__(self) -> MockCapability:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.instance
