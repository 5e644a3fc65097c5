"""
likelihood.py
-------------

Gaussian-process log marginal likelihood and outcome standardisation.

The marginal likelihood is written out explicitly through a Cholesky
factorisation instead of being delegated to a regression library:

    K = k(X, X) + (α + noise) I,   K = L Lᵀ
    log p(y | X, θ) = -½ yᵀ K⁻¹ y - Σ_i log L_ii - (n/2) log 2π

``K⁻¹ y`` is obtained with two triangular solves and ``log|K|`` as twice
the log of the diagonal of L, so K is never inverted.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np

from gpbo.model.kernels import Kernel
from gpbo.utils.linalg import add_jitter, cholesky_solve


def effective_noise(params: dict, jitter: float) -> jnp.ndarray:
    """Diagonal term: fixed jitter plus the fitted noise when present."""
    if "log_noise" in params:
        return jitter + jnp.exp(params["log_noise"])
    return jnp.asarray(jitter)


def log_marginal_likelihood(
    params: dict,
    kernel: Kernel,
    X: jnp.ndarray,
    y: jnp.ndarray,
    jitter: float,
) -> jnp.ndarray:
    """
    Log marginal likelihood of a zero-mean GP.

    Parameters
    ----------
    params : dict
        Kernel parameter PyTree; an optional ``"log_noise"`` entry adds a
        fitted observation-noise variance to the jitter.
    kernel : Kernel
        Covariance function.
    X : jnp.ndarray, shape (n, d)
        Observed inputs.
    y : jnp.ndarray, shape (n,)
        Observed (normally standardised) outcomes.
    jitter : float
        α, added to the diagonal of the Gram matrix.

    Returns
    -------
    jnp.ndarray
        Scalar log likelihood. NaN when K is not positive definite, which
        callers treat as a failed evaluation.
    """
    n = X.shape[0]
    K = add_jitter(kernel.gram(params, X), effective_noise(params, jitter))
    L = jnp.linalg.cholesky(K)
    alpha = cholesky_solve(L, y)
    return (
        -0.5 * jnp.dot(y, alpha)
        - jnp.sum(jnp.log(jnp.diag(L)))
        - 0.5 * n * jnp.log(2.0 * jnp.pi)
    )


def standardize(y, enabled: bool = True) -> tuple[np.ndarray, float, float]:
    """
    Standardise outcomes to zero mean and unit variance.

    Parameters
    ----------
    y : array-like, shape (n,)
    enabled : bool, default=True
        When False, returns ``y`` unchanged with mean 0 and scale 1.

    Returns
    -------
    y_std : np.ndarray
    mean : float
    scale : float
        Standard deviation, or 1.0 when the outcomes are constant up to
        round-off relative to their magnitude.
    """
    y = np.asarray(y, dtype=float).reshape(-1)
    if not enabled or y.size == 0:
        return y, 0.0, 1.0
    mean = float(np.mean(y))
    scale = float(np.std(y))
    if not np.isfinite(scale) or scale <= 1e-12 * float(np.max(np.abs(y))):
        scale = 1.0
    return (y - mean) / scale, mean, scale
