"""
exceptions.py
-------------

Exception and warning types raised by gpbo.

Argument errors use the built-in ``ValueError`` / ``TypeError`` and misuse
of an object before it is ready raises ``RuntimeError``. The types below
cover the failures of the optimisation run itself.

- GPBOError : base class for run-time failures.
- ObjectiveEvaluationError : the external objective raised, returned a
  non-finite value, or returned something that is not a scalar.
- EvaluationTimeoutError : the objective did not return within the
  configured ``evaluation_timeout``.
- EvaluationCancelledError : a stop signal arrived while the objective
  was running; its result (if any) is discarded.
- KernelFitWarning : every restart of the kernel-parameter fit failed and
  the previous parameters were kept.
"""

from __future__ import annotations


class GPBOError(Exception):
    """Base class for errors raised during an optimisation run."""


class ObjectiveEvaluationError(GPBOError):
    """
    The objective evaluator failed.

    Attributes
    ----------
    x : list of float | None
        Input at which the evaluation was attempted.
    """

    def __init__(self, message: str, x=None):
        super().__init__(message)
        self.x = None if x is None else [float(v) for v in x]


class EvaluationTimeoutError(ObjectiveEvaluationError):
    """The objective exceeded its time budget."""


class EvaluationCancelledError(GPBOError):
    """The evaluation was abandoned because a stop signal was set."""


class KernelFitWarning(UserWarning):
    """Kernel hyperparameter fitting failed; previous parameters retained."""
