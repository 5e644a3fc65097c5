"""
base.py
-------

Abstract base class for initial designs.

An initial design chooses the first inputs to evaluate, before any
surrogate exists. Designs only propose inputs; evaluating them is left to
the caller (the optimisation loop, or evaluate_design()).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from gpbo.data import History, SearchDomain
from gpbo.utils.objective import evaluate


class InitialDesign(ABC):
    """
    Abstract interface for initial designs.

    Methods
    -------
    propose(domain, n) -> np.ndarray
        Propose ``n`` inputs inside ``domain``.

    All designs (Sobol, Latin hypercube, uniform) subclass this.
    """

    @abstractmethod
    def sample_unit(self, n: int, dim: int) -> np.ndarray:
        """
        Draw ``n`` points in the unit cube ``[0, 1]^dim``.

        Returns
        -------
        np.ndarray, shape (n, dim)
        """
        ...

    def propose(self, domain: SearchDomain, n: int) -> np.ndarray:
        """
        Propose ``n`` inputs inside ``domain``.

        Parameters
        ----------
        domain : SearchDomain
            Box to sample from. Fixed dimensions are returned fixed.
        n : int
            Number of inputs (>= 1).

        Returns
        -------
        np.ndarray, shape (n, d)
        """
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        u = self.sample_unit(n, domain.dim)
        return domain.clip(domain.from_unit(u))


def evaluate_design(
    objective: Callable[[np.ndarray], float],
    X,
    history: History | None = None,
) -> History:
    """
    Evaluate ``objective`` at every row of ``X``.

    Parameters
    ----------
    objective : callable
        Maps an input of shape (d,) to a scalar.
    X : array-like, shape (n, d)
        Inputs, evaluated in order.
    history : History | None
        History to append to. A new one is created when None.

    Returns
    -------
    History

    Raises
    ------
    ObjectiveEvaluationError
        If the objective raises, or returns a non-scalar or non-finite
        value. Points evaluated before the failure remain in ``history``.
    """
    history = History() if history is None else history
    for x in np.atleast_2d(np.asarray(X, dtype=float)):
        history.append(x, evaluate(objective, x))
    return history
