"""
latin_hypercube.py
------------------

Latin-hypercube initial design: every dimension is split into ``n`` equal
strata and each stratum receives exactly one point.
"""

from __future__ import annotations

import numpy as np
from scipy.stats.qmc import LatinHypercube

from gpbo.initial_design.base import InitialDesign


class LatinHypercubeDesign(InitialDesign):
    """
    Latin-hypercube design.

    Parameters
    ----------
    seed : int, default=0
        RNG seed.
    """

    def __init__(self, seed: int = 0):
        self.seed = seed

    def sample_unit(self, n: int, dim: int) -> np.ndarray:
        engine = LatinHypercube(d=dim, rng=np.random.default_rng(self.seed))
        return engine.random(n)

    def __repr__(self) -> str:
        return f"LatinHypercubeDesign(seed={self.seed})"
