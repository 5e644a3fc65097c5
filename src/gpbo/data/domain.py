"""
domain.py
---------

Box-shaped search domain.

SearchDomain is immutable for the duration of a run. It defines where the
initial design may sample and where the acquisition optimiser may look,
and maps inputs to and from the unit cube the surrogate works in.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import jax
import jax.numpy as jnp
import numpy as np

from gpbo.utils.rng import uniform_in_bounds


@dataclass(frozen=True, eq=False)
class SearchDomain:
    """
    Per-dimension lower/upper bounds.

    Parameters
    ----------
    lower : array-like, shape (d,)
    upper : array-like, shape (d,)

    Raises
    ------
    ValueError
        If the bounds are not finite, have different shapes, are empty, or
        ``lower > upper`` in some dimension.

    Examples
    --------
    >>> domain = SearchDomain.from_bounds([(-2.0, 2.0)])
    >>> domain.to_unit([0.0])
    array([0.5])
    """

    lower: np.ndarray
    upper: np.ndarray

    def __post_init__(self):
        lower = np.array(self.lower, dtype=float).reshape(-1)
        upper = np.array(self.upper, dtype=float).reshape(-1)
        if lower.shape != upper.shape:
            raise ValueError(
                f"lower and upper must have the same shape, got {lower.shape} and {upper.shape}"
            )
        if lower.size == 0:
            raise ValueError("domain must have at least one dimension")
        if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
            raise ValueError("domain bounds must be finite")
        if np.any(lower > upper):
            raise ValueError("lower must be <= upper in every dimension")
        lower.setflags(write=False)
        upper.setflags(write=False)
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    @classmethod
    def from_bounds(cls, bounds: Sequence[Sequence[float]]) -> SearchDomain:
        """Build from ``[(low, high), ...]`` or a ``(d, 2)`` array."""
        arr = np.asarray(bounds, dtype=float)
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise ValueError(f"bounds must have shape (d, 2), got {arr.shape}")
        return cls(lower=arr[:, 0], upper=arr[:, 1])

    @classmethod
    def unit(cls, dim: int) -> SearchDomain:
        """The unit cube ``[0, 1]^dim``."""
        return cls(lower=np.zeros(dim), upper=np.ones(dim))

    @property
    def dim(self) -> int:
        return self.lower.shape[0]

    @property
    def width(self) -> np.ndarray:
        return self.upper - self.lower

    @property
    def is_degenerate(self) -> bool:
        """True when ``lower == upper`` in every dimension (a single point)."""
        return bool(np.all(self.width == 0))

    def as_bounds(self) -> np.ndarray:
        """Return the ``(d, 2)`` array ``[[low, high], ...]``."""
        return np.stack([self.lower, self.upper], axis=1)

    def contains(self, x, tol: float = 0.0) -> bool:
        x = np.asarray(x, dtype=float).reshape(-1)
        return bool(np.all(x >= self.lower - tol) and np.all(x <= self.upper + tol))

    def clip(self, x) -> np.ndarray:
        """Clamp ``x`` (shape (d,) or (n, d)) into the domain."""
        return np.clip(np.asarray(x, dtype=float), self.lower, self.upper)

    def to_unit(self, x) -> np.ndarray:
        """Map ``x`` affinely into ``[0, 1]^d``; fixed dimensions map to 0."""
        x = np.asarray(x, dtype=float)
        width = self.width
        scale = np.where(width > 0, width, 1.0)
        return np.where(width > 0, (x - self.lower) / scale, 0.0)

    def from_unit(self, u) -> np.ndarray:
        """Inverse of :meth:`to_unit`."""
        return self.lower + np.asarray(u, dtype=float) * self.width

    def sample_uniform(self, key: jax.Array, n: int) -> np.ndarray:
        """Draw ``n`` points uniformly in the domain, shape (n, d)."""
        samples = uniform_in_bounds(key, jnp.asarray(self.lower), jnp.asarray(self.upper), n)
        return np.asarray(samples)
