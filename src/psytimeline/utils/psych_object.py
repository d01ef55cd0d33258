"""
psych_object.py
---------------

Base class of every handler: a name plus a registry of user-visible
attributes that can be updated generically.

Registered attributes behave like plain attributes (``obj.alpha``,
``obj.alpha = 2``) and additionally get ``get_alpha()`` / ``set_alpha()``
accessors. ``_set_attribute`` supports arithmetic updates, element-wise
between sequences or between a sequence and a scalar:

>>> po = PsychObject()
>>> po._add_attribute("positions", [1, 2, 3])
>>> po._set_attribute("positions", [10, 20, 30], operation="+")
True
>>> po.positions
[11, 22, 33]
"""

from __future__ import annotations

import logging
import operator
from typing import Any, Callable

from psytimeline.errors import SizeMismatch, UnsupportedOperation

logger = logging.getLogger(__name__)

OPERATIONS: dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": operator.mod,
}

# values longer than this are truncated in the string representation
_MAX_REPR_LENGTH = 50


class PsychObject:
    """
    Named object with a registry of user-visible attributes.

    Parameters
    ----------
    name : str, optional
        Object name. Defaults to the class name.

    Attributes
    ----------
    _user_attributes : list of str
        Registered attribute names, in registration order.
    """

    def __init__(self, name: str | None = None):
        object.__setattr__(self, "_user_attributes", [])
        object.__setattr__(self, "_attribute_values", {})
        object.__setattr__(self, "_on_change", {})
        self._add_attribute("name", name, type(self).__name__)

    # ------------------------------------------------------------------
    # Attribute access
    # ------------------------------------------------------------------
    def __getattr__(self, name: str) -> Any:
        # only reached when normal lookup fails
        values = self.__dict__.get("_attribute_values")
        if values is None:
            raise AttributeError(name)
        if name in values:
            return values[name]
        for prefix in ("get_", "set_"):
            if name.startswith(prefix):
                attribute = _find_attribute(values, name[len(prefix) :])
                if attribute is not None:
                    if prefix == "get_":
                        return lambda: values[attribute]
                    return lambda value, log=False: self._set_attribute(
                        attribute, value, log
                    )
        raise AttributeError(
            f"'{type(self).__name__}' object has no attribute '{name}'"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        values = self.__dict__.get("_attribute_values")
        if values is not None and name in values:
            self._set_attribute(name, value)
        else:
            object.__setattr__(self, name, value)

    def __str__(self) -> str:
        parts = []
        for attribute in self._user_attributes:
            text = str(self._attribute_values[attribute])
            if len(text) > _MAX_REPR_LENGTH:
                text = text[:_MAX_REPR_LENGTH] + "~"
            parts.append(f"{attribute}={text}")
        return f"{type(self).__name__}({', '.join(parts)})"

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def _add_attribute(
        self,
        name: str,
        value: Any,
        default: Any = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        """
        Register a user-visible attribute.

        Parameters
        ----------
        name : str
            Attribute name.
        value : Any
            Initial value. ``None`` falls back to ``default``.
        default : Any, optional
            Value used when ``value`` is None.
        on_change : callable, optional
            Called without arguments whenever the value changes.
        """
        if name not in self._user_attributes:
            self._user_attributes.append(name)
        if on_change is not None:
            self._on_change[name] = on_change
        self._attribute_values[name] = default if value is None else value

    def _set_attribute(
        self,
        name: str,
        value: Any,
        log: bool = False,
        operation: str | None = None,
    ) -> bool:
        """
        Set (or arithmetically update) a registered attribute.

        Parameters
        ----------
        name : str
            Attribute name.
        value : Any
            New value, or the right operand of ``operation``.
        log : bool, default=False
            Log the change at INFO level.
        operation : {None, "", "+", "-", "*", "/", "%"}
            Update rule applied as ``old <operation> value``.

        Returns
        -------
        bool
            Whether the stored value changed.

        Raises
        ------
        UnsupportedOperation
            If ``operation`` is not a known operator.
        SizeMismatch
            If old and new values are sequences of different lengths.
        """
        old = self._attribute_values.get(name)

        if value is None:
            logger.warning(
                "setting the value of attribute: %s in %s: %s as: undefined",
                name,
                type(self).__name__,
                self._attribute_values.get("name"),
            )
            new = None
        elif operation in (None, ""):
            new = value
        else:
            if operation not in OPERATIONS:
                raise UnsupportedOperation(
                    f"unsupported operation: {operation} when setting: {name} "
                    f"of: {self._attribute_values.get('name')}"
                )
            new = _apply(OPERATIONS[operation], old, value, name)

        if name not in self._user_attributes:
            self._user_attributes.append(name)
        self._attribute_values[name] = new

        changed = not _same(old, new)
        if log and changed:
            logger.info("%s.%s = %s", self._attribute_values.get("name"), name, new)
        if changed and name in self._on_change:
            self._on_change[name]()
        return changed


def _find_attribute(values: dict, suffix: str) -> str | None:
    for attribute in values:
        if attribute.lower() == suffix.lower():
            return attribute
    return None


def _apply(op: Callable[[Any, Any], Any], old: Any, value: Any, name: str) -> Any:
    old_is_seq = isinstance(old, (list, tuple))
    new_is_seq = isinstance(value, (list, tuple))
    if old_is_seq and new_is_seq:
        if len(old) != len(value):
            raise SizeMismatch(
                f"old and new value of {name} should have the same size when "
                f"they are both arrays, got {len(old)} and {len(value)}"
            )
        return [op(a, b) for a, b in zip(old, value)]
    if old_is_seq:
        return [op(a, value) for a in old]
    if new_is_seq:
        return [op(old, b) for b in value]
    return op(old, value)


def _same(a: Any, b: Any) -> bool:
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        # array-likes without a scalar truth value
        return a is b
