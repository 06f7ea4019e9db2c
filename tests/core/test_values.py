"""Tests for tagged parameter values."""

import pytest

from desk_automation.core.values import (
    ParameterValue,
    ValueKind,
    unwrap_parameters,
    wrap_parameters,
)


class TestWrapping:
    """Tests for ParameterValue.of()."""

    def test_scalars(self):
        assert ParameterValue.of("x").kind is ValueKind.STRING
        assert ParameterValue.of(3).kind is ValueKind.INTEGER
        assert ParameterValue.of(0.5).kind is ValueKind.FLOAT
        assert ParameterValue.of(None).is_null

    def test_bool_is_not_integer(self):
        """Test that booleans keep their own kind."""
        value = ParameterValue.of(True)
        assert value.kind is ValueKind.BOOLEAN
        assert value.as_int() is None

    def test_nested_list_and_map(self):
        value = ParameterValue.of({"levels": [0.1, 0.5], "name": "desk"})
        assert value.kind is ValueKind.MAP

        items = value.as_dict()
        assert items["name"].as_str() == "desk"
        assert [v.as_float() for v in items["levels"].as_list()] == [0.1, 0.5]
        assert value.to_python() == {"levels": [0.1, 0.5], "name": "desk"}

    def test_map_values_are_read_only(self):
        value = ParameterValue.of({"a": 1})
        with pytest.raises(TypeError):
            value.value["b"] = ParameterValue.of(2)

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            ParameterValue.of(object())

    def test_already_wrapped_passes_through(self):
        value = ParameterValue.of(1)
        assert ParameterValue.of(value) is value


class TestAccessors:
    """Tests for the shape-checked accessors."""

    def test_wrong_shape_returns_none(self):
        value = ParameterValue.of("0.5")
        assert value.as_float() is None
        assert value.as_bool() is None
        assert value.as_list() is None

    def test_integer_widens_to_float(self):
        assert ParameterValue.of(1).as_float() == 1.0

    def test_integral_float_as_int(self):
        assert ParameterValue.of(2.0).as_int() == 2
        assert ParameterValue.of(2.5).as_int() is None

    def test_values_are_hashable(self):
        assert len({ParameterValue.of(1), ParameterValue.of(1), ParameterValue.of([1])}) == 2


class TestParameterMaps:
    def test_wrap_and_unwrap(self):
        wrapped = wrap_parameters({"level": 0.5, "mode": "auto"})
        assert wrapped["level"] == ParameterValue.of(0.5)
        assert unwrap_parameters(wrapped) == {"level": 0.5, "mode": "auto"}

    def test_wrap_empty(self):
        assert wrap_parameters(None) == {}
