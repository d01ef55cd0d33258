"""
rng.py
------

Random number utilities for psytimeline.

This module standardizes RNG handling across the handlers, so that a
seeded TrialHandler or MultiStairHandler produces the same trial order on
every run.

- Wrappers around JAX PRNG keys.
- A fresh integer seed is drawn with NumPy when the caller gives none;
  the drawn seed is kept on the handler so the order can be reproduced.

Examples
--------
>>> from psytimeline.utils.rng import seed, split, permutation
>>> key = seed(0)
>>> k1, k2 = split(key)
>>> order = permutation(k1, 3)  # a shuffled [0, 1, 2]
"""

from __future__ import annotations

import jax
import jax.random as jr
import numpy as np


def seed(seed_value: int) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int
        Seed for random number generation.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    return jr.PRNGKey(seed_value)


def split(key: jax.Array, num: int = 2):
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    tuple of jax.Array
        Independent new PRNG keys.
    """
    return jr.split(key, num=num)


def fresh_seed() -> int:
    """Draw a non-deterministic seed from the operating system entropy pool."""
    return int(np.random.default_rng().integers(0, 2**31 - 1))


def permutation(key: jax.Array, n: int) -> list[int]:
    """
    Random permutation of ``range(n)`` as a list of Python ints.

    Parameters
    ----------
    key : jax.Array
        RNG key, consumed by this call.
    n : int
        Length of the permutation.
    """
    if n <= 0:
        return []
    return [int(i) for i in jr.permutation(key, n)]


def shuffled(key: jax.Array, items: list) -> list:
    """Return a new list holding ``items`` in random order."""
    return [items[i] for i in permutation(key, len(items))]


def choice(key: jax.Array, n: int) -> int:
    """Draw one index uniformly from ``range(n)``."""
    return int(jr.randint(key, (), 0, n))
