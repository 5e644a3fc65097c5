"""
utils
=====

Shared utility functions and helpers for gpbo.

This subpackage provides:
- linalg : jitter-aware Cholesky, triangular solves, gradient-safe norms.
- rng : random number handling for reproducibility.
- objective : calling the objective and validating its outcome.
"""

from .linalg import add_jitter, cholesky_solve, safe_cholesky, safe_norm, safe_sqrt
from .objective import call_objective, check_outcome, evaluate
from .rng import seed, split, uniform_in_bounds

__all__ = [
    # linalg
    "add_jitter",
    "cholesky_solve",
    "safe_cholesky",
    "safe_norm",
    "safe_sqrt",
    # objective
    "call_objective",
    "check_outcome",
    "evaluate",
    # rng
    "seed",
    "split",
    "uniform_in_bounds",
]
