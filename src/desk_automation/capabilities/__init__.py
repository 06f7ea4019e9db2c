"""
Capabilities for desk-automation.

A capability exposes named, parameterized actions against one automatable
subsystem. The registry discovers capabilities from a static constructor
table and routes invocations to them.
"""

from .base import (
    # Descriptors
    ParameterType,
    ParameterValidation,
    ParameterSpec,
    ActionSpec,
    CapabilityDescriptor,
    CompatibilityResult,
    # Contract
    Capability,
)
from .keyboard_backlight import KeyboardBacklightCapability
from .mock import MockCapability
from .registry import CapabilityFactory, CapabilityRegistry, builtin_factories

__all__ = [
    # Registry
    "CapabilityRegistry",
    "CapabilityFactory",
    "builtin_factories",
    # Contract
    "Capability",
    "KeyboardBacklightCapability",
    "MockCapability",
    # Descriptors
    "ParameterType",
    "ParameterValidation",
    "ParameterSpec",
    "ActionSpec",
    "CapabilityDescriptor",
    "CompatibilityResult",
]
