"""
Tagged parameter values.

Rule parameters are an open name -> value map. Values are wrapped in a closed
variant so every consumer converts them explicitly through an accessor that
returns None when the stored value has a different shape.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ValueKind(Enum):
    """Shapes a ParameterValue can hold."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    NULL = "null"
    LIST = "list"
    MAP = "map"


@dataclass(frozen=True)
class ParameterValue:
    """
    A dynamically typed, JSON-compatible value.

    Build instances with ParameterValue.of(); lists and maps hold
    ParameterValue items, so nested data is wrapped all the way down.
    """

    kind: ValueKind
    value: Any = None

    @classmethod
    def of(cls, raw: Any) -> "ParameterValue":
        """
        Wrap a plain Python value.

        Raises:
            TypeError: If the value is not JSON-compatible
        """
        if isinstance(raw, ParameterValue):
            return raw
        if raw is None:
            return cls(ValueKind.NULL)
        # bool is a subclass of int, check it first
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ValueKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ValueKind.FLOAT, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, (list, tuple)):
            return cls(ValueKind.LIST, tuple(cls.of(item) for item in raw))
        if isinstance(raw, Mapping):
            items = {str(k): cls.of(v) for k, v in raw.items()}
            return cls(ValueKind.MAP, _FrozenMap(items))
        raise TypeError(f"Unsupported parameter value type: {type(raw).__name__}")

    @classmethod
    def null(cls) -> "ParameterValue":
        return cls(ValueKind.NULL)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def as_bool(self) -> Optional[bool]:
        return self.value if self.kind is ValueKind.BOOLEAN else None

    def as_int(self) -> Optional[int]:
        if self.kind is ValueKind.INTEGER:
            return self.value
        if self.kind is ValueKind.FLOAT and float(self.value).is_integer():
            return int(self.value)
        return None

    def as_float(self) -> Optional[float]:
        if self.kind in (ValueKind.FLOAT, ValueKind.INTEGER):
            return float(self.value)
        return None

    def as_str(self) -> Optional[str]:
        return self.value if self.kind is ValueKind.STRING else None

    def as_list(self) -> Optional[List["ParameterValue"]]:
        return list(self.value) if self.kind is ValueKind.LIST else None

    def as_dict(self) -> Optional[Dict[str, "ParameterValue"]]:
        return dict(self.value) if self.kind is ValueKind.MAP else None

    def to_python(self) -> Any:
        """Unwrap to plain Python data (recursively)."""
        if self.kind is ValueKind.LIST:
            return [item.to_python() for item in self.value]
        if self.kind is ValueKind.MAP:
            return {k: v.to_python() for k, v in self.value.items()}
        return self.value

    def __repr__(self) -> str:
        return f"ParameterValue({self.kind.value}, {self.to_python()!r})"


class _FrozenMap(dict):
    """Hashable read-only dict used for MAP values."""

    def __hash__(self) -> int:  # type: ignore[override]
        return hash(tuple(sorted(self.items(), key=lambda kv: kv[0])))

    def _readonly(self, *args: Any, **kwargs: Any) -> None:
        raise TypeError("ParameterValue maps are read-only")

    __setitem__ = _readonly  # type: ignore[assignment]
    __delitem__ = _readonly  # type: ignore[assignment]
    update = _readonly  # type: ignore[assignment]
    pop = _readonly  # type: ignore[assignment]
    clear = _readonly  # type: ignore[assignment]
    setdefault = _readonly  # type: ignore[assignment]


def wrap_parameters(params: Optional[Mapping[str, Any]]) -> Dict[str, ParameterValue]:
    """Wrap every value of a plain parameter map."""
    if not params:
        return {}
    return {str(k): ParameterValue.of(v) for k, v in params.items()}


def unwrap_parameters(params: Mapping[str, ParameterValue]) -> Dict[str, Any]:
    """Convert a wrapped parameter map back to plain data."""
    return {k: v.to_python() for k, v in params.items()}
