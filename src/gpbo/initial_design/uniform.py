"""
uniform.py
----------

Uniform random initial design drawn from a JAX PRNG key.
"""

from __future__ import annotations

import numpy as np

from gpbo.initial_design.base import InitialDesign
from gpbo.utils.rng import seed as make_key
from gpbo.utils.rng import uniform_in_bounds


class UniformDesign(InitialDesign):
    """
    Independent uniform draws.

    Parameters
    ----------
    seed : int, default=0
        RNG seed.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed

    def sample_unit(self, n: int, dim: int) -> np.ndarray:
        key = make_key(self.seed)
        return np.asarray(uniform_in_bounds(key, np.zeros(dim), np.ones(dim), n))

    def __repr__(self) -> str:
        return f"UniformDesign(seed={self.seed})"
