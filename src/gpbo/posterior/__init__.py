"""
posterior
=========

Posterior representations used by acquisition functions.

This subpackage provides:
- PredictivePosterior: protocol for p(f(X*) | data) (anything with
  ``.mean`` and ``.variance``)
- PosteriorQueryResult: concrete mean/variance pair at query inputs
- GaussianProcessPosterior: immutable GP snapshot produced by
  GaussianProcessSurrogate.fit()
"""

from .gp_posterior import GaussianProcessPosterior
from .predictive_posterior import PosteriorQueryResult, PredictivePosterior

__all__ = [
    "GaussianProcessPosterior",
    "PosteriorQueryResult",
    "PredictivePosterior",
]
