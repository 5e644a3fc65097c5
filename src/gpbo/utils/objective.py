"""
objective.py
------------

Calling the external objective.

Every evaluation, whether from an initial design or from the optimisation
loop, goes through call_objective() and check_outcome(), so the same
outcomes are accepted and rejected everywhere.
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from gpbo.exceptions import ObjectiveEvaluationError


def call_objective(objective: Callable[[np.ndarray], float], x: np.ndarray):
    """
    Call ``objective`` on a copy of ``x``.

    Raises
    ------
    ObjectiveEvaluationError
        Wrapping any exception raised by the objective.
    """
    try:
        return objective(x.copy())
    except Exception as exc:
        raise ObjectiveEvaluationError(
            f"objective raised {type(exc).__name__}: {exc}", x=x
        ) from exc


def check_outcome(x: np.ndarray, y) -> float:
    """
    Convert an objective result to a finite float.

    Raises
    ------
    ObjectiveEvaluationError
        If ``y`` is not a real numeric scalar (booleans and strings
        included) or is not finite.
    """
    arr = np.asarray(y)
    if arr.size != 1 or not np.issubdtype(arr.dtype, np.number):
        raise ObjectiveEvaluationError(
            f"objective must return a real scalar, got {type(y).__name__}", x=x
        )
    if np.iscomplexobj(arr):
        raise ObjectiveEvaluationError("objective returned a complex value", x=x)
    value = float(arr.reshape(()))
    if not math.isfinite(value):
        raise ObjectiveEvaluationError(f"objective returned non-finite value {value}", x=x)
    return value


def evaluate(objective: Callable[[np.ndarray], float], x) -> float:
    """Evaluate ``objective`` once at ``x`` and validate the outcome."""
    x = np.array(x, dtype=float)
    return check_outcome(x, call_objective(objective, x))
