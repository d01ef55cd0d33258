"""
utils
=====

Shared utility functions and helpers for psytimeline.

This subpackage provides:
- psych_object : PsychObject, the named attribute registry every handler
  builds on, with arithmetic attribute updates.
- rng : random number handling for reproducible trial orders.
- sequences : small list helpers (emptiness test, integer ranges).
"""

from .psych_object import PsychObject
from .rng import choice, fresh_seed, permutation, seed, shuffled, split
from .sequences import is_empty, to_list, value_range

__all__ = [
    # psych_object
    "PsychObject",
    # rng
    "seed",
    "split",
    "fresh_seed",
    "permutation",
    "shuffled",
    "choice",
    # sequences
    "is_empty",
    "to_list",
    "value_range",
]
