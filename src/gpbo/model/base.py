"""
base.py
-------

Base class for surrogate models.

Provides:
- Surrogate.fit(history) --> immutable posterior snapshot
- Surrogate.posterior(X) --> predictions from the latest snapshot

Design
------
A surrogate owns its kernel parameters and nothing else. Every call to
fit() builds a fresh snapshot from the History it is given; predictions
are served by that snapshot, so no Gram matrix or factorisation outlives
a refit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gpbo.data import History
    from gpbo.posterior import GaussianProcessPosterior, PosteriorQueryResult


class Surrogate(ABC):
    """
    Abstract base class for probabilistic surrogates of the objective.

    Subclasses must implement:
    - fit(history, key) --> posterior snapshot

    Attributes
    ----------
    _snapshot : GaussianProcessPosterior | None
        Snapshot returned by the last fit.
    """

    def __init__(self) -> None:
        self._snapshot: GaussianProcessPosterior | None = None

    @abstractmethod
    def fit(self, history: History, key: Any = None) -> GaussianProcessPosterior:
        """
        Condition the surrogate on every evaluation in ``history``.

        Parameters
        ----------
        history : History
            Evaluations to condition on.
        key : jax.Array | None
            PRNG key for any randomised fitting.

        Returns
        -------
        GaussianProcessPosterior
            Immutable snapshot of the fitted surrogate.
        """
        ...

    @property
    def is_fitted(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> GaussianProcessPosterior:
        """Snapshot from the last fit."""
        if self._snapshot is None:
            raise RuntimeError("Must call fit() before accessing the posterior")
        return self._snapshot

    def posterior(self, X) -> PosteriorQueryResult:
        """
        Predictive posterior at query inputs, from the latest snapshot.

        Parameters
        ----------
        X : array-like, shape (m, d)

        Returns
        -------
        PosteriorQueryResult
        """
        return self.snapshot.predict(X)
