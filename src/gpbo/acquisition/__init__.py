"""
acquisition
===========

Acquisition functions and their maximisation.

This module provides:
- AcquisitionFunction: Protocol for acquisition functions
- Expected Improvement (closed form and analytic gradient) and Upper
  Confidence Bound, as functions of a predictive posterior and as callables
  bound to a GP snapshot
- optimize_acqf(): Functional interface for optimization
- AcquisitionOptimizer: multi-restart gradient ascent used by the loop

Design
------
Functional style for one-off use:
    scores = expected_improvement(snapshot.predict(X), best_f)
    X_next, value = optimize_acqf(lambda X: ..., bounds, q=1)

Callable classes for the optimisation loop, which also need gradients:
    acq = ExpectedImprovement(snapshot, best_f)
    candidate = AcquisitionOptimizer().maximize(acq, domain, key)

Optimization Methods
--------------------
- optimize_acqf_discrete: Exhaustive search over candidate set
- optimize_acqf: Gradient-based optimization (Optax)
- optimize_acqf_random: Random search baseline
"""

from gpbo.acquisition.base import AcqFn, AcquisitionFunction, DifferentiableAcquisition
from gpbo.acquisition.expected_improvement import (
    ExpectedImprovement,
    expected_improvement,
    expected_improvement_grad,
    log_expected_improvement,
)
from gpbo.acquisition.optimize import (
    AcquisitionOptimizer,
    optimize_acqf,
    optimize_acqf_discrete,
    optimize_acqf_random,
)
from gpbo.acquisition.upper_confidence_bound import (
    UpperConfidenceBound,
    upper_confidence_bound,
)

# Registry for string-based acquisition selection
ACQUISITIONS = {
    "ei": ExpectedImprovement,
    "ucb": UpperConfidenceBound,
}


def make_acquisition(name: str, gp_posterior, best_f: float, **options):
    """
    Build a registered acquisition bound to a GP snapshot.

    Parameters
    ----------
    name : str
        Key of ACQUISITIONS.
    gp_posterior : GaussianProcessPosterior
    best_f : float
        Incumbent value (ignored by acquisitions that do not use it).
    **options
        Forwarded to the acquisition constructor (e.g. ``beta`` for UCB).
    """
    if name not in ACQUISITIONS:
        available = ", ".join(ACQUISITIONS.keys())
        raise ValueError(f"Unknown acquisition: '{name}'. Available: {available}")
    return ACQUISITIONS[name].from_posterior(gp_posterior, best_f, **options)


__all__ = [
    "AcqFn",
    "AcquisitionFunction",
    "DifferentiableAcquisition",
    "ExpectedImprovement",
    "UpperConfidenceBound",
    "expected_improvement",
    "expected_improvement_grad",
    "log_expected_improvement",
    "upper_confidence_bound",
    "AcquisitionOptimizer",
    "optimize_acqf",
    "optimize_acqf_discrete",
    "optimize_acqf_random",
    "ACQUISITIONS",
    "make_acquisition",
]
