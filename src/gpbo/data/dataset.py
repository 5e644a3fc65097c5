"""
dataset.py
-----------

Core data containers for gpbo.

defines:
- ObservedPoint: one evaluated input and its outcome
- History: append-only record of every objective evaluation
- Candidate: a proposed input together with its acquisition value

Notes
-----
- Data is stored in standard NumPy arrays and Python lists.
- Convert to jax.numpy (jnp) arrays only when passing into the surrogate
  or the acquisition optimiser.
- History has no removal API: points are only ever appended, in
  evaluation order.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np


@dataclass(frozen=True, eq=False)
class ObservedPoint:
    """
    An evaluated input.

    Attributes
    ----------
    x : np.ndarray, shape (d,)
        Input vector.
    y : float
        Observed (possibly noisy) outcome.
    """

    x: np.ndarray
    y: float


@dataclass(frozen=True, eq=False)
class Candidate:
    """
    A proposed next input.

    Attributes
    ----------
    x : np.ndarray, shape (d,)
        Proposed input.
    acquisition_value : float
        Acquisition value achieved at ``x``.
    """

    x: np.ndarray
    acquisition_value: float


def _as_vector(x) -> np.ndarray:
    arr = np.array(x, dtype=float).reshape(-1)
    return arr


class History:
    """
    Append-only record of objective evaluations.

    Attributes
    ----------
    inputs : list of np.ndarray
        Evaluated inputs, each of shape (d,).
    outcomes : list of float
        Observed outcomes.
    """

    def __init__(self) -> None:
        self.inputs: list[np.ndarray] = []
        self.outcomes: list[float] = []

    @property
    def dim(self) -> int | None:
        """Input dimension, or None while the history is empty."""
        return self.inputs[0].shape[0] if self.inputs else None

    def append(self, x, y: float) -> None:
        """
        Append a single evaluation.

        Parameters
        ----------
        x : array-like, shape (d,)
            Evaluated input.
        y : float
            Observed outcome. Must be finite.

        Raises
        ------
        ValueError
            If ``x`` has the wrong dimension or ``y`` is not finite.
        """
        x_arr = _as_vector(x)
        if self.inputs and x_arr.shape[0] != self.dim:
            raise ValueError(
                f"x has dimension {x_arr.shape[0]}, history has dimension {self.dim}"
            )
        y_val = float(y)
        if not math.isfinite(y_val):
            raise ValueError(f"outcome must be finite, got {y_val}")
        self.inputs.append(x_arr)
        self.outcomes.append(y_val)

    def add_batch(self, X, y) -> None:
        """
        Append a batch of evaluations.

        Parameters
        ----------
        X : array-like, shape (n, d)
            Evaluated inputs.
        y : array-like, shape (n,)
            Outcomes, aligned with ``X``.
        """
        X_arr = np.asarray(X, dtype=float)
        if X_arr.ndim == 1:
            X_arr = X_arr[:, None]
        y_arr = np.asarray(y, dtype=float).reshape(-1)
        if X_arr.shape[0] != y_arr.shape[0]:
            raise ValueError(
                f"X has {X_arr.shape[0]} rows but y has {y_arr.shape[0]} entries"
            )
        for x_row, y_val in zip(X_arr, y_arr):
            self.append(x_row, y_val)

    def extend(self, other: History) -> None:
        """
        Append every point of another history (in-place).

        Parameters
        ----------
        other : History
            History to append, in its own order.
        """
        for point in other:
            self.append(point.x, point.y)

    def to_numpy(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Return inputs and outcomes as numpy arrays.

        Returns
        -------
        X : np.ndarray, shape (n, d)
            ``(0, 0)`` when empty.
        y : np.ndarray, shape (n,)
        """
        if not self.inputs:
            return np.zeros((0, 0)), np.zeros((0,))
        return np.stack(self.inputs), np.array(self.outcomes, dtype=float)

    def to_jax(self) -> tuple[jnp.ndarray, jnp.ndarray]:
        """Return inputs and outcomes as jax.numpy arrays."""
        X, y = self.to_numpy()
        return jnp.asarray(X), jnp.asarray(y)

    @property
    def points(self) -> list[ObservedPoint]:
        """Return the evaluations as ObservedPoint records."""
        return [ObservedPoint(x=x.copy(), y=y) for x, y in zip(self.inputs, self.outcomes)]

    def __iter__(self) -> Iterator[ObservedPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        """Return number of evaluations."""
        return len(self.inputs)

    @classmethod
    def from_arrays(cls, X, y) -> History:
        """
        Construct a History from arrays.

        Parameters
        ----------
        X : array, shape (n, d) or (n,) for one-dimensional inputs
        y : array, shape (n,)

        Returns
        -------
        History

        Examples
        --------
        >>> history = History.from_arrays([[0.0], [0.5]], [1.0, 0.2])
        >>> len(history)
        2
        """
        history = cls()
        history.add_batch(X, y)
        return history

    def best(self, maximize: bool = True) -> ObservedPoint:
        """
        Return the best evaluation so far.

        Parameters
        ----------
        maximize : bool, default=True
            Whether larger outcomes are better. Ties keep the earliest point.

        Raises
        ------
        ValueError
            If the history is empty.
        """
        if not self.outcomes:
            raise ValueError("history is empty")
        y = np.asarray(self.outcomes)
        idx = int(np.argmax(y) if maximize else np.argmin(y))
        return ObservedPoint(x=self.inputs[idx].copy(), y=self.outcomes[idx])

    def contains(self, x, tol: float = 0.0) -> bool:
        """
        Whether some evaluated input lies within ``tol`` of ``x`` (max-norm).
        """
        if not self.inputs:
            return False
        X, _ = self.to_numpy()
        dist = np.max(np.abs(X - _as_vector(x)[None, :]), axis=1)
        return bool(np.any(dist <= tol))

    def tail(self, n: int) -> History:
        """
        Return the last n evaluations as a new History.

        Parameters
        ----------
        n : int
            Number of evaluations to keep
        """
        new_history = History()
        if n <= 0:
            return new_history
        new_history.inputs = [x.copy() for x in self.inputs[-n:]]
        new_history.outcomes = list(self.outcomes[-n:])
        return new_history

    def copy(self) -> History:
        """
        Create a deep copy of this history.
        """
        new_history = History()
        new_history.inputs = [x.copy() for x in self.inputs]
        new_history.outcomes = list(self.outcomes)
        return new_history

    def __repr__(self) -> str:
        return f"History(n={len(self)}, dim={self.dim})"
