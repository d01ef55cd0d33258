"""
test_psych_object.py
--------------------

Tests for the PsychObject attribute registry and arithmetic updates.
"""

import logging

import pytest

from psytimeline.errors import SizeMismatch, UnsupportedOperation
from psytimeline.utils import PsychObject


@pytest.fixture
def obj():
    po = PsychObject(name="stim")
    po._add_attribute("size", 2)
    po._add_attribute("position", [1, 2])
    return po


class TestRegistry:
    def test_default_name(self):
        assert PsychObject().name == "PsychObject"

    def test_default_value(self):
        po = PsychObject()
        po._add_attribute("opacity", None, 1.0)
        assert po.opacity == 1.0

    def test_generated_accessors(self, obj):
        assert obj.get_size() == 2
        assert obj.set_size(3) is True
        assert obj.size == 3
        assert obj.set_size(3) is False

    def test_plain_assignment_goes_through_registry(self, obj):
        obj.size = 5
        assert obj.get_size() == 5

    def test_unknown_attribute(self, obj):
        with pytest.raises(AttributeError):
            obj.colour
        with pytest.raises(AttributeError):
            obj.get_colour()

    def test_on_change(self):
        changes = []
        po = PsychObject()
        po._add_attribute("ori", 0, on_change=lambda: changes.append(po.ori))
        po.ori = 0
        po.ori = 45
        assert changes == [45]

    def test_str(self, obj):
        obj._add_attribute("long", "x" * 80)
        text = str(obj)
        assert text.startswith("PsychObject(name=stim, size=2, position=[1, 2]")
        assert "x" * 50 + "~" in text


class TestOperations:
    @pytest.mark.parametrize(
        "operation, value, expected",
        [("+", 3, 5), ("-", 3, -1), ("*", 3, 6), ("/", 4, 0.5), ("%", 2, 0)],
    )
    def test_scalar(self, obj, operation, value, expected):
        obj._set_attribute("size", value, operation=operation)
        assert obj.size == expected

    def test_elementwise(self, obj):
        obj._set_attribute("position", [10, 20], operation="+")
        assert obj.position == [11, 22]

    def test_sequence_and_scalar(self, obj):
        obj._set_attribute("position", 3, operation="*")
        assert obj.position == [3, 6]
        obj._set_attribute("size", [1, 2], operation="+")
        assert obj.size == [3, 4]

    def test_size_mismatch(self, obj):
        with pytest.raises(SizeMismatch, match="should have the same size"):
            obj._set_attribute("position", [1, 2, 3], operation="+")

    def test_unsupported_operation(self, obj):
        with pytest.raises(UnsupportedOperation, match="unsupported operation"):
            obj._set_attribute("size", 2, operation="**")

    def test_none_warns(self, obj, caplog):
        with caplog.at_level(logging.WARNING):
            obj._set_attribute("size", None)
        assert obj.size is None
        assert "undefined" in caplog.text
