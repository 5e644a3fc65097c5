"""
gp_posterior.py
---------------

Immutable Gaussian-process posterior snapshot.

GaussianProcessSurrogate.fit() returns a GaussianProcessPosterior: the
training data, the kernel parameters, the Cholesky factor of the jittered
Gram matrix and the weight vector K⁻¹y, frozen together. Every prediction
is a pure function of that snapshot, so

- predicting twice gives identical results,
- no Gram matrix survives a refit (the next fit builds a new snapshot),
- the snapshot can be shared read-only by parallel acquisition restarts.

Posterior formulas
------------------
With ``K = L Lᵀ`` and ``k* = [k(x*, x_i)]_i``:

    μ(x*)  = k*ᵀ K⁻¹ y
    σ²(x*) = k(x*, x*) - ||L⁻¹ k*||²     (clamped at 0)

Outcomes are modelled on a standardised scale; predictions are mapped
back to the original scale before being returned.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np
from jax.scipy.linalg import solve_triangular

from gpbo.model.kernels import Kernel
from gpbo.model.likelihood import effective_noise
from gpbo.posterior.predictive_posterior import PosteriorQueryResult
from gpbo.utils.linalg import cholesky_solve, safe_cholesky


class GaussianProcessPosterior:
    """
    Posterior of a zero-mean GP conditioned on a fixed dataset.

    Parameters
    ----------
    kernel : Kernel
        Covariance function.
    params : dict
        Kernel parameters (held fixed in this snapshot).
    X : array-like, shape (n, d)
        Observed inputs. ``n`` may be 0.
    y : array-like, shape (n,)
        Observed outcomes on the standardised scale.
    jitter : float
        α added to the Gram-matrix diagonal.
    y_mean, y_scale : float
        Standardisation constants; predictions are returned as
        ``y_mean + y_scale * f``.
    input_dim : int | None
        Needed only to interpret 1-D query arrays before any observation.
    max_tries : int, default=8
        Jitter escalation attempts when K is numerically not positive
        definite (each multiplies the jitter by 10).

    Attributes
    ----------
    effective_jitter : float
        Diagonal term actually used, ≥ the requested jitter.
    log_marginal_likelihood : float
        log p(y | X, params) on the standardised scale.
    """

    def __init__(
        self,
        kernel: Kernel,
        params: dict,
        X,
        y,
        *,
        jitter: float,
        y_mean: float = 0.0,
        y_scale: float = 1.0,
        input_dim: int | None = None,
        max_tries: int = 8,
    ):
        X = jnp.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X[:, None]
        y = jnp.asarray(y, dtype=float).reshape(-1)
        if X.shape[0] != y.shape[0]:
            raise ValueError(f"X has {X.shape[0]} rows but y has {y.shape[0]} entries")

        self.kernel = kernel
        self.params = params
        self.X_train = X
        self.y_train = y
        self.jitter = float(jitter)
        self.y_mean = float(y_mean)
        self.y_scale = float(y_scale)
        if X.shape[0] > 0:
            self.input_dim = int(X.shape[1])
        else:
            self.input_dim = input_dim

        n = X.shape[0]
        noise = float(effective_noise(params, jitter))
        if n > 0:
            L, used = safe_cholesky(kernel.gram(params, X), noise, max_tries=max_tries)
            alpha = cholesky_solve(L, y)
            lml = (
                -0.5 * jnp.dot(y, alpha)
                - jnp.sum(jnp.log(jnp.diag(L)))
                - 0.5 * n * jnp.log(2.0 * jnp.pi)
            )
        else:
            L, used = jnp.zeros((0, 0)), noise
            alpha = jnp.zeros((0,))
            lml = jnp.asarray(0.0)
        self.cholesky = L
        self.alpha = alpha
        self.effective_jitter = used
        self.log_marginal_likelihood = float(lml)

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------
    @property
    def n_observations(self) -> int:
        return int(self.X_train.shape[0])

    def best_observed(self, maximize: bool = True) -> float:
        """Best observed outcome on the original scale."""
        if self.n_observations == 0:
            raise ValueError("posterior has no observations")
        y = self.y_train * self.y_scale + self.y_mean
        return float(jnp.max(y) if maximize else jnp.min(y))

    # ------------------------------------------------------------------
    # PREDICTIONS
    # ------------------------------------------------------------------
    def _as_2d(self, X) -> jnp.ndarray:
        X = jnp.asarray(X, dtype=float)
        if X.ndim == 0:
            return X.reshape(1, 1)
        if X.ndim == 1:
            if self.input_dim == 1:
                return X[:, None]
            return X[None, :]
        return X

    def predict(self, X) -> PosteriorQueryResult:
        """
        Posterior mean and variance at query inputs.

        Parameters
        ----------
        X : array-like, shape (m, d)
            Query inputs. A 1-D array is read as ``m`` scalar inputs when
            ``d == 1`` and as a single input otherwise.

        Returns
        -------
        PosteriorQueryResult
            mean and variance, each of shape (m,). Before any observation
            these are the prior mean and k(x*, x*).
        """
        X = self._as_2d(X)
        prior_var = self.kernel.diag(self.params, X)
        if self.n_observations == 0:
            mean = jnp.zeros(X.shape[0], dtype=prior_var.dtype)
            var = prior_var
        else:
            Ks = self.kernel.cross_covariance(self.params, X, self.X_train)
            mean = Ks @ self.alpha
            v = solve_triangular(self.cholesky, Ks.T, lower=True)
            var = prior_var - jnp.sum(jnp.square(v), axis=0)
        var = jnp.maximum(var, 0.0)
        return PosteriorQueryResult(
            mean=mean * self.y_scale + self.y_mean,
            variance=var * self.y_scale**2,
        )

    def __call__(self, X) -> PosteriorQueryResult:
        return self.predict(X)

    def mean_and_std(self, x: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
        """
        μ(x) and σ(x) for a single input of shape (d,).

        Differentiable with jax.grad; used for analytic acquisition
        gradients.
        """
        result = self.predict(jnp.reshape(x, (1, -1)))
        return result.mean[0], result.std[0]

    # ------------------------------------------------------------------
    # UPDATES
    # ------------------------------------------------------------------
    def condition_on_observations(self, X, y) -> GaussianProcessPosterior:
        """
        Return a new snapshot with extra observations and the same params.

        Parameters
        ----------
        X : array-like, shape (k, d)
            New inputs.
        y : array-like, shape (k,)
            New outcomes on the original scale.

        Notes
        -----
        The standardisation constants of this snapshot are reused; the
        kernel parameters are not refitted.
        """
        X_new = jnp.asarray(X, dtype=float)
        if X_new.ndim == 1:
            X_new = X_new[:, None] if self.input_dim == 1 else X_new[None, :]
        y_new = (np.asarray(y, dtype=float).reshape(-1) - self.y_mean) / self.y_scale
        if self.n_observations:
            X_all = jnp.concatenate([self.X_train, X_new], axis=0)
        else:
            X_all = X_new
        y_all = jnp.concatenate([self.y_train, jnp.asarray(y_new)])
        return GaussianProcessPosterior(
            self.kernel,
            self.params,
            X_all,
            y_all,
            jitter=self.jitter,
            y_mean=self.y_mean,
            y_scale=self.y_scale,
            input_dim=self.input_dim,
        )

    def __repr__(self) -> str:
        return (
            f"GaussianProcessPosterior(kernel={self.kernel!r}, n={self.n_observations}, "
            f"jitter={self.effective_jitter:.3g})"
        )
