"""
sequences.py
------------

Small helpers on Python sequences shared by the handlers.
"""

from __future__ import annotations

from typing import Any


def is_empty(x: Any) -> bool:
    """
    Whether ``x`` holds no usable value.

    ``None``, an empty list/tuple, and a list holding a single ``None`` are
    empty. Anything that is not a list or tuple is not empty.
    """
    if x is None:
        return True
    if isinstance(x, (list, tuple)):
        return len(x) == 0 or (len(x) == 1 and x[0] is None)
    return False


def value_range(*args: int) -> list[int]:
    """
    Integer range as a list, ``value_range(stop)`` or ``value_range(start, stop[, step])``.

    Raises
    ------
    TypeError
        If any argument is not an integer.
    """
    if not 1 <= len(args) <= 3:
        raise TypeError(f"value_range expects 1 to 3 arguments, got {len(args)}")
    for a in args:
        if isinstance(a, bool) or not isinstance(a, int):
            raise TypeError(f"value_range arguments must be integers, got {a!r}")
    return list(range(*args))


def to_list(x: Any) -> list:
    """Wrap a scalar in a list; copy lists and tuples."""
    if isinstance(x, (list, tuple)):
        return list(x)
    return [x]
