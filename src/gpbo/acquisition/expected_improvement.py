"""
expected_improvement.py
-----------------------

Expected Improvement (EI) acquisition function.

The most popular acquisition function for Bayesian optimization.
Balances exploration (high uncertainty) and exploitation (high mean).

References
----------
Mockus, J., Tiesis, V., & Zilinskas, A. (1978). The application of Bayesian
methods for seeking the extremum. Towards Global Optimization, 2, 117-129.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
from jax.scipy import stats

from gpbo.posterior.predictive_posterior import PosteriorQueryResult
from gpbo.utils.linalg import safe_sqrt

if TYPE_CHECKING:
    from gpbo.posterior import GaussianProcessPosterior, PredictivePosterior


def _standardized_improvement(mean, std, best_f, maximize):
    """Signed improvement, Z = improvement / σ, and the σ > 0 mask."""
    improvement = mean - best_f if maximize else best_f - mean
    positive = std > 0
    z = improvement / jnp.where(positive, std, 1.0)
    return improvement, z, positive


def expected_improvement(
    posterior: PredictivePosterior,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Expected improvement acquisition function.

    Computes E[max(0, f(x) - best_f)] for each candidate point.

    Parameters
    ----------
    posterior : PredictivePosterior
        Predictive posterior p(f(X*) | data)
    best_f : float
        Best observed value so far
    maximize : bool, default=True
        If True, maximize (higher is better).
        If False, minimize (lower is better).

    Returns
    -------
    jnp.ndarray, shape (n_candidates,)
        EI values for each candidate, all ≥ 0.

    Examples
    --------
    >>> snapshot = surrogate.fit(history)
    >>> best_f = history.best().y
    >>> ei = expected_improvement(snapshot.predict(X_candidates), best_f)
    >>> X_next = X_candidates[jnp.argmax(ei)]

    Mathematical Details
    --------------------
    Let μ(x), σ(x) be the posterior mean and std at x and
    Z = (μ(x) - best_f) / σ(x). Then

        EI(x) = (μ(x) - best_f) Φ(Z) + σ(x) φ(Z)

    where Φ is the standard normal CDF and φ is the PDF. EI(x) = 0 where
    σ(x) = 0.
    """
    mean = jnp.asarray(posterior.mean)
    std = safe_sqrt(jnp.asarray(posterior.variance))
    improvement, z, positive = _standardized_improvement(mean, std, best_f, maximize)
    ei = improvement * stats.norm.cdf(z) + std * stats.norm.pdf(z)
    ei = jnp.where(positive, ei, 0.0)
    # Round-off can push EI slightly below zero far from the incumbent
    return jnp.maximum(ei, 0.0)


def expected_improvement_grad(
    mean: jnp.ndarray,
    std: jnp.ndarray,
    best_f: float,
    mean_grad: jnp.ndarray,
    std_grad: jnp.ndarray,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Analytic gradient of EI with respect to the input.

    Parameters
    ----------
    mean, std : jnp.ndarray
        μ(x) and σ(x) at a single input (scalars).
    best_f : float
        Best observed value so far.
    mean_grad, std_grad : jnp.ndarray, shape (d,)
        ∇μ(x) and ∇σ(x).
    maximize : bool, default=True

    Returns
    -------
    jnp.ndarray, shape (d,)

    Notes
    -----
    Differentiating EI = I Φ(Z) + σ φ(Z) with I = ±(μ - best_f) and
    Z = I / σ, the terms involving ∂Z cancel because φ'(Z) = -Z φ(Z):

        ∇EI = ±Φ(Z) ∇μ + φ(Z) ∇σ

    The gradient is 0 where σ = 0, matching EI = 0 there.
    """
    _, z, positive = _standardized_improvement(mean, std, best_f, maximize)
    sign = 1.0 if maximize else -1.0
    grad = sign * stats.norm.cdf(z) * mean_grad + stats.norm.pdf(z) * std_grad
    return jnp.where(positive, grad, jnp.zeros_like(grad))


def log_expected_improvement(
    posterior: PredictivePosterior,
    best_f: float,
    maximize: bool = True,
) -> jnp.ndarray:
    """
    Log expected improvement for numerical stability.

    Useful when EI values span many orders of magnitude.

    Parameters
    ----------
    posterior : PredictivePosterior
        Predictive posterior
    best_f : float
        Best observed value
    maximize : bool, default=True
        If True, maximize. If False, minimize.

    Returns
    -------
    jnp.ndarray, shape (n_candidates,)
        log(EI) values

    Notes
    -----
    Since we only care about ranking, log(EI) preserves the order:
        argmax EI(x) = argmax log(EI(x))
    """
    ei = expected_improvement(posterior, best_f, maximize=maximize)

    # Add small constant for log stability
    return jnp.log(ei + 1e-25)


class ExpectedImprovement:
    """
    EI bound to a fitted GP snapshot.

    Parameters
    ----------
    gp_posterior : GaussianProcessPosterior
        Immutable surrogate snapshot.
    best_f : float
        Incumbent value.
    maximize : bool, default=True

    Examples
    --------
    >>> acq = ExpectedImprovement(snapshot, best_f=history.best().y)
    >>> acq(X_candidates).shape
    (n_candidates,)
    >>> value, grad = acq.value_and_grad(X_candidates[0])
    """

    def __init__(
        self,
        gp_posterior: GaussianProcessPosterior,
        best_f: float,
        maximize: bool = True,
    ):
        self.gp_posterior = gp_posterior
        self.best_f = float(best_f)
        self.maximize = maximize

    @classmethod
    def from_posterior(
        cls, gp_posterior: GaussianProcessPosterior, best_f: float, **options
    ) -> ExpectedImprovement:
        return cls(gp_posterior, best_f, **options)

    def __call__(self, X: jnp.ndarray) -> jnp.ndarray:
        return expected_improvement(
            self.gp_posterior.predict(X), self.best_f, maximize=self.maximize
        )

    def value_and_grad(self, x: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
        """
        EI and its analytic gradient at a single input of shape (d,).

        A single jax.jacrev pass over the snapshot's mean_and_std yields μ, σ
        and their gradients, which expected_improvement_grad combines.
        """
        x = jnp.asarray(x, dtype=float).reshape(-1)

        def moments(x):
            mean, std = self.gp_posterior.mean_and_std(x)
            return (mean, std), (mean, std)

        (mean_grad, std_grad), (mean, std) = jax.jacrev(moments, has_aux=True)(x)
        value = expected_improvement(
            PosteriorQueryResult(mean, jnp.square(std)), self.best_f, maximize=self.maximize
        )
        grad = expected_improvement_grad(
            mean, std, self.best_f, mean_grad, std_grad, maximize=self.maximize
        )
        return value, grad

    def __repr__(self) -> str:
        return f"ExpectedImprovement(best_f={self.best_f:.6g}, maximize={self.maximize})"

