"""
Base classes and descriptors for capabilities.

A capability is a plug-in that exposes a fixed set of named, parameterized
actions against one automatable subsystem (keyboard backlight, display
brightness, ...).
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from desk_automation.core.errors import ActionNotSupported, InvalidParameters
from desk_automation.core.values import ParameterValue

logger = logging.getLogger(__name__)


# =============================================================================
# Descriptors
# =============================================================================


class ParameterType(Enum):
    """Value types an action parameter can declare."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIME = "time"  # "HH:MM" or "HH:MM:SS"
    DATE = "date"  # "YYYY-MM-DD"
    SELECTION = "selection"  # one of validation.options


@dataclass(frozen=True)
class ParameterValidation:
    """Validation rules for a parameter."""

    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[List[str]] = None
    pattern: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "options": list(self.options) if self.options is not None else None,
            "pattern": self.pattern,
        }


@dataclass(frozen=True)
class ParameterSpec:
    """Declaration of one action parameter."""

    id: str
    display_name: str
    type: ParameterType
    required: bool = True
    default: Any = None
    validation: Optional[ParameterValidation] = None

    def validate(self, value: Optional[ParameterValue]) -> Optional[ParameterValue]:
        """
        Check a supplied value against this spec.

        Args:
            value: Supplied value (None or null = not supplied)

        Returns:
            The value to use (the default when not supplied), or None if the
            parameter is optional and has no default

        Raises:
            InvalidParameters: If the value is missing, mistyped or out of range
        """
        if value is None or value.is_null:
            if self.default is not None:
                return ParameterValue.of(self.default)
            if self.required:
                raise InvalidParameters(f"missing required parameter '{self.id}'")
            return None

        if self.type is ParameterType.INTEGER:
            number = value.as_int()
            if number is None:
                raise InvalidParameters(f"'{self.id}' must be an integer")
            self._check_bounds(number)
        elif self.type is ParameterType.FLOAT:
            number = value.as_float()
            if number is None:
                raise InvalidParameters(f"'{self.id}' must be a number")
            self._check_bounds(number)
        elif self.type is ParameterType.BOOLEAN:
            if value.as_bool() is None:
                raise InvalidParameters(f"'{self.id}' must be a boolean")
        else:
            text = value.as_str()
            if text is None:
                raise InvalidParameters(f"'{self.id}' must be a string")
            self._check_text(text)

        return value

    def _check_bounds(self, number: float) -> None:
        rules = self.validation
        if rules is None:
            return
        if rules.min is not None and number < rules.min:
            raise InvalidParameters(f"'{self.id}' must be >= {rules.min}, got {number}")
        if rules.max is not None and number > rules.max:
            raise InvalidParameters(f"'{self.id}' must be <= {rules.max}, got {number}")

    def _check_text(self, text: str) -> None:
        if self.type is ParameterType.TIME:
            try:
                time.fromisoformat(text)
            except ValueError:
                raise InvalidParameters(f"'{self.id}' is not a valid time: {text!r}") from None
        elif self.type is ParameterType.DATE:
            try:
                date.fromisoformat(text)
            except ValueError:
                raise InvalidParameters(f"'{self.id}' is not a valid date: {text!r}") from None

        rules = self.validation
        options = rules.options if rules else None
        if self.type is ParameterType.SELECTION and not options:
            raise InvalidParameters(f"'{self.id}' declares no options")
        if options is not None and text not in options:
            raise InvalidParameters(f"'{self.id}' must be one of {options}, got {text!r}")
        if rules and rules.pattern and re.fullmatch(rules.pattern, text) is None:
            raise InvalidParameters(f"'{self.id}' does not match {rules.pattern!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "type": self.type.value,
            "required": self.required,
            "default": self.default,
            "validation": self.validation.to_dict() if self.validation else None,
        }


@dataclass(frozen=True)
class ActionSpec:
    """An action a capability can execute."""

    id: str
    display_name: str
    description: str = ""
    parameters: List[ParameterSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        ids = [p.id for p in self.parameters]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Action '{self.id}' has duplicate parameters: {duplicates}")

    def parameter(self, parameter_id: str) -> Optional[ParameterSpec]:
        for spec in self.parameters:
            if spec.id == parameter_id:
                return spec
        return None

    def validate(self, params: Mapping[str, ParameterValue]) -> Dict[str, ParameterValue]:
        """
        Validate parameters for this action.

        Returns:
            Declared parameters with defaults filled in. Undeclared keys are
            dropped.

        Raises:
            InvalidParameters: On the first invalid parameter
        """
        result: Dict[str, ParameterValue] = {}
        for spec in self.parameters:
            value = spec.validate(params.get(spec.id))
            if value is not None:
                result[spec.id] = value

        extra = set(params) - {spec.id for spec in self.parameters}
        if extra:
            logger.debug(f"Ignoring undeclared parameters for {self.id}: {sorted(extra)}")
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
        }


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Static identity and actions of a capability."""

    id: str
    display_name: str
    version: str
    description: str
    actions: List[ActionSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        ids = [a.id for a in self.actions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Capability '{self.id}' has duplicate actions: {duplicates}")

    def action(self, action_id: str) -> Optional[ActionSpec]:
        for spec in self.actions:
            if spec.id == action_id:
                return spec
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "version": self.version,
            "description": self.description,
            "actions": [a.to_dict() for a in self.actions],
        }


@dataclass(frozen=True)
class CompatibilityResult:
    """Result of a system compatibility check."""

    compatible: bool
    missing_requirements: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, warnings: Optional[List[str]] = None) -> "CompatibilityResult":
        return cls(True, [], list(warnings or []))

    @classmethod
    def incompatible(cls, reasons: List[str]) -> "CompatibilityResult":
        return cls(False, list(reasons), [])


# =============================================================================
# Capability Contract
# =============================================================================


class Capability(ABC):
    """
    Base class for capabilities.

    A capability:
    - Declares its identity and actions as class constants
    - Validates and executes actions with a dynamically typed parameter map
    - Reports whether the current system supports it
    - Releases its resources in cleanup()

    Registries select implementations by `identifier`, never by type.
    """

    identifier: str
    display_name: str
    version: str
    description: str = ""
    actions: List[ActionSpec] = []

    @abstractmethod
    async def execute(self, action: str, params: Mapping[str, ParameterValue]) -> None:
        """
        Execute an action.

        Args:
            action: Action id (one of `actions`)
            params: Parameter map, not yet validated

        Raises:
            ActionNotSupported: For an undeclared action
            InvalidParameters: For parameters that fail validation
            Exception: Any capability-specific failure
        """
        pass

    @abstractmethod
    def compatibility(self) -> CompatibilityResult:
        """
        Check if this system supports the capability.

        Returns:
            CompatibilityResult; compatible=False keeps the capability out of
            the registry
        """
        pass

    async def cleanup(self) -> None:
        """
        Release resources when the capability is unloaded.

        Default implementation does nothing.
        """
        pass

    def descriptor(self) -> CapabilityDescriptor:
        return CapabilityDescriptor(
            id=self.identifier,
            display_name=self.display_name,
            version=self.version,
            description=self.description,
            actions=list(self.actions),
        )

    def action_spec(self, action: str) -> ActionSpec:
        """
        Look up a declared action.

        Raises:
            ActionNotSupported: If the action is not declared
        """
        for spec in self.actions:
            if spec.id == action:
                return spec
        raise ActionNotSupported(action)

    def validate(
        self, action: str, params: Mapping[str, ParameterValue]
    ) -> Dict[str, ParameterValue]:
        """Validate params for a declared action (see ActionSpec.validate)."""
        return self.action_spec(action).validate(params)
