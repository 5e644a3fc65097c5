"""
predictive_posterior.py
----------------------

Predictive posterior distributions p(f(X*) | data) at query inputs.

This module defines posteriors over **predictions** (not kernel
parameters), used by acquisition functions for Bayesian optimisation.

Design
------
Acquisition functions only need the marginal mean and variance at each
query input, so anything exposing ``.mean`` and ``.variance`` arrays
satisfies the PredictivePosterior protocol. PosteriorQueryResult is the
concrete, ephemeral value returned by GaussianProcessPosterior.predict();
it is recomputed on demand and never cached across surrogate refits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import jax.numpy as jnp

from gpbo.utils.linalg import safe_sqrt


@runtime_checkable
class PredictivePosterior(Protocol):
    """
    Protocol for predictive distributions p(f(X*) | data) at query inputs.
    """

    @property
    def mean(self) -> jnp.ndarray:
        """
        Posterior predictive mean E[f(X*) | data].

        Returns
        -------
        jnp.ndarray
            Shape (n_test,)
        """
        ...

    @property
    def variance(self) -> jnp.ndarray:
        """
        Posterior predictive marginal variances Var[f(X*) | data].

        Returns
        -------
        jnp.ndarray
            Shape (n_test,), non-negative.
        """
        ...


@dataclass(frozen=True, eq=False)
class PosteriorQueryResult:
    """
    Posterior mean and variance at a batch of query inputs.

    Attributes
    ----------
    mean : jnp.ndarray, shape (n_test,)
        μ(x*) for each query input.
    variance : jnp.ndarray, shape (n_test,)
        σ²(x*) ≥ 0 for each query input.
    """

    mean: jnp.ndarray
    variance: jnp.ndarray

    @property
    def std(self) -> jnp.ndarray:
        """σ(x*); differentiable, with zero gradient where the variance is 0."""
        return safe_sqrt(self.variance)

    def __len__(self) -> int:
        return int(self.mean.shape[0])
