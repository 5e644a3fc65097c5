"""
rng.py
------

Random number utilities for gpbo.

Every random choice in a run (initial design, kernel-fit restarts,
acquisition restarts, duplicate replacement) is drawn from JAX PRNG keys
derived from the single ``random_seed`` of the configuration, so two runs
with the same seed produce the same history.

Examples
--------
>>> from gpbo.utils.rng import seed, split
>>> key = seed(0)
>>> k1, k2 = split(key)
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jax.random as jr


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
    return jr.PRNGKey(int(seed_value))


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
    jax.Array
        Stacked array of ``num`` independent keys; unpacks like a tuple.
    """
    return jr.split(key, num=num)


def uniform_in_bounds(
    key: jax.Array, lower: jnp.ndarray, upper: jnp.ndarray, n: int
) -> jnp.ndarray:
    """
    Draw ``n`` points uniformly inside the box ``[lower, upper]``.

    Parameters
    ----------
    key : jax.Array
        PRNG key.
    lower, upper : jnp.ndarray, shape (d,)
        Box corners. Dimensions with ``lower == upper`` are returned fixed.
    n : int
        Number of points.

    Returns
    -------
    jnp.ndarray, shape (n, d)
    """
    lower = jnp.asarray(lower, dtype=float)
    upper = jnp.asarray(upper, dtype=float)
    u = jr.uniform(key, (n, lower.shape[0]), dtype=lower.dtype)
    return lower + u * (upper - lower)
