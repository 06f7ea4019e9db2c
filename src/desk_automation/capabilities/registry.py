"""
Capability registry - discovers, holds and invokes capabilities.

Capabilities are selected by static identifier from a factory table; the
registry never inspects concrete types.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from desk_automation.core.errors import (
    CapabilityIncompatible,
    CapabilityNotFound,
    ExecutionFailed,
)
from desk_automation.core.values import wrap_parameters

from .base import Capability, CapabilityDescriptor, CompatibilityResult
from .keyboard_backlight import KeyboardBacklightCapability

logger = logging.getLogger(__name__)

CapabilityFactory = Callable[[], Capability]


def builtin_factories() -> Dict[str, CapabilityFactory]:
    """Constructor table of the capabilities shipped with desk-automation."""
    return {
        KeyboardBacklightCapability.identifier: KeyboardBacklightCapability,
    }


class CapabilityRegistry:
    """
    Registry of loaded capabilities.

    Responsibilities:
    - Construct every known capability and keep the compatible ones
    - Route action invocations, wrapping capability errors
    - Unload capabilities once in-flight invocations have finished

    Example:
        registry = CapabilityRegistry()
        registry.discover()
        await registry.invoke("keyboard-backlight", "turn_on", {})
    """

    def __init__(self, factories: Optional[Mapping[str, CapabilityFactory]] = None) -> None:
        self._factories: Dict[str, CapabilityFactory] = (
            dict(factories) if factories is not None else builtin_factories()
        )
        self._capabilities: Dict[str, Capability] = {}

        # id -> reason, for capabilities that failed to construct or are incompatible
        self.failures: Dict[str, str] = {}
        # id -> non-blocking compatibility warnings
        self.warnings: Dict[str, List[str]] = {}

        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    # =========================================================================
    # Discovery
    # =========================================================================

    def discover(self) -> List[str]:
        """
        Construct every known capability not loaded yet.

        Construction errors and incompatible capabilities are recorded in
        `failures` and logged; they never abort discovery.

        Returns:
            IDs of all loaded capabilities (sorted)
        """
        for capability_id in self._factories:
            if capability_id in self._capabilities:
                continue
            try:
                capability, result = self._construct(capability_id)
            except Exception as e:
                self.failures[capability_id] = str(e)
                logger.error(f"Failed to load capability {capability_id}: {e}", exc_info=True)
                continue

            if not result.compatible:
                self.failures[capability_id] = ", ".join(result.missing_requirements)
                logger.warning(
                    f"Capability {capability_id} not compatible: "
                    f"{', '.join(result.missing_requirements)}"
                )
                continue

            self._install(capability_id, capability, result)

        logger.info(f"Loaded {len(self._capabilities)} capabilities")
        return sorted(self._capabilities)

    def _construct(self, capability_id: str) -> Tuple[Capability, CompatibilityResult]:
        capability = self._factories[capability_id]()
        if capability.identifier != capability_id:
            raise ValueError(
                f"Factory for '{capability_id}' built capability '{capability.identifier}'"
            )
        return capability, capability.compatibility()

    def _install(
        self,
        capability_id: str,
        capability: Capability,
        result: CompatibilityResult,
    ) -> None:
        for warning in result.warnings:
            logger.warning(f"Capability {capability_id}: {warning}")
        self.warnings[capability_id] = list(result.warnings)
        self.failures.pop(capability_id, None)
        self._capabilities[capability_id] = capability
        logger.info(f"Loaded capability: {capability.display_name} v{capability.version}")

    # =========================================================================
    # Lookup
    # =========================================================================

    def has(self, capability_id: str) -> bool:
        return capability_id in self._capabilities

    def get(self, capability_id: str) -> Capability:
        """
        Get a loaded capability.

        Raises:
            CapabilityNotFound: If no capability with this id is loaded
        """
        capability = self._capabilities.get(capability_id)
        if capability is None:
            raise CapabilityNotFound(capability_id)
        return capability

    def list_descriptors(self) -> List[CapabilityDescriptor]:
        """Descriptors of all loaded capabilities, sorted by display name."""
        descriptors = [c.descriptor() for c in self._capabilities.values()]
        return sorted(descriptors, key=lambda d: d.display_name)

    def descriptor(self, capability_id: str) -> Optional[CapabilityDescriptor]:
        capability = self._capabilities.get(capability_id)
        return capability.descriptor() if capability else None

    def __len__(self) -> int:
        return len(self._capabilities)

    # =========================================================================
    # Invocation
    # =========================================================================

    @property
    def active_invocations(self) -> int:
        return self._active

    async def invoke(
        self,
        capability_id: str,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Execute an action on a loaded capability.

        Args:
            capability_id: Target capability
            action: Action id
            params: Plain values or ParameterValues

        Raises:
            CapabilityNotFound: If the capability is not loaded
            ExecutionFailed: Wrapping any error raised by the capability
        """
        capability = self.get(capability_id)

        self._active += 1
        self._idle.clear()
        try:
            values = wrap_parameters(params)
            logger.debug(f"Invoking {capability_id}.{action} with {sorted(values)}")
            await capability.execute(action, values)
        except Exception as e:
            raise ExecutionFailed(action, e) from e
        finally:
            self._active -= 1
            if self._active == 0:
                self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no invocation is in flight."""
        await self._idle.wait()

    # =========================================================================
    # Unloading
    # =========================================================================

    async def unload(self, capability_id: str) -> bool:
        """
        Clean up and remove one capability.

        Returns:
            True if the capability was loaded
        """
        capability = self._capabilities.pop(capability_id, None)
        if capability is None:
            return False
        await self._cleanup(capability_id, capability)
        logger.info(f"Unloaded capability: {capability_id}")
        return True

    async def reload(self, capability_id: str) -> Capability:
        """
        Unload (if loaded) and construct a capability again.

        Raises:
            CapabilityNotFound: If no factory is known for the id
            CapabilityIncompatible: If the new instance is not compatible
        """
        if capability_id not in self._factories:
            raise CapabilityNotFound(capability_id)

        await self.unload(capability_id)

        capability, result = self._construct(capability_id)
        if not result.compatible:
            self.failures[capability_id] = ", ".join(result.missing_requirements)
            raise CapabilityIncompatible(capability_id, result.missing_requirements)

        self._install(capability_id, capability, result)
        return capability

    async def unload_all(self) -> None:
        """Wait for in-flight invocations, then clean up and clear everything."""
        if self._active:
            logger.debug(f"Waiting for {self._active} in-flight invocations")
        await self.wait_idle()

        capabilities, self._capabilities = self._capabilities, {}
        for capability_id, capability in capabilities.items():
            await self._cleanup(capability_id, capability)
        self.warnings.clear()
        logger.info("All capabilities unloaded")

    async def _cleanup(self, capability_id: str, capability: Capability) -> None:
        try:
            await capability.cleanup()
        except Exception as e:
            logger.error(f"Cleanup of {capability_id} failed: {e}", exc_info=True)
