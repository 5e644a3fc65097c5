"""
sobol.py
--------

Sobol quasi-random initial design.

- Uses a scrambled Sobol engine to generate low-discrepancy points.
- Sobol sequences are balanced for power-of-two sample sizes; other sizes
  are accepted and scipy's balance warning is silenced.
"""

from __future__ import annotations

import warnings

import numpy as np
from scipy.stats.qmc import Sobol

from gpbo.initial_design.base import InitialDesign


class SobolDesign(InitialDesign):
    """
    Scrambled Sobol design.

    Parameters
    ----------
    seed : int, default=0
        Scrambling seed.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed

    def sample_unit(self, n: int, dim: int) -> np.ndarray:
        engine = Sobol(d=dim, scramble=True, rng=np.random.default_rng(self.seed))
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message=".*balance properties.*")
            return engine.random(n)

    def __repr__(self) -> str:
        return f"SobolDesign(seed={self.seed})"
