"""
gp.py
-----

Gaussian-process surrogate with maximum-marginal-likelihood kernel fitting.

fit(history) does three things:
1. standardises the outcomes (optional),
2. refits the kernel parameters with an inference engine, warm-started
   from the current parameters,
3. factorises the jittered Gram matrix and returns an immutable
   GaussianProcessPosterior.

Failure handling
----------------
- Every restart non-finite: the previous parameters are kept and a
  KernelFitWarning is emitted.
- No restart improves on the previous parameters: they are kept silently.
- Gram matrix numerically not positive definite: the posterior retries the
  factorisation with a larger jitter (see utils.linalg.safe_cholesky).

Examples
--------
>>> from gpbo.data import History
>>> from gpbo.model import GaussianProcessSurrogate, Matern52
>>> surrogate = GaussianProcessSurrogate(Matern52(lengthscale=0.2), jitter=1e-4)
>>> history = History.from_arrays([[0.1], [0.5], [0.9]], [0.3, 1.0, 0.2])
>>> post = surrogate.fit(history)
>>> post.predict([[0.5]]).mean.shape
(1,)
"""

from __future__ import annotations

import logging
import math
import warnings
from typing import Any

import jax
import jax.numpy as jnp

from gpbo.data import History
from gpbo.exceptions import KernelFitWarning
from gpbo.inference import INFERENCE_ENGINES, InferenceEngine, KernelFitResult
from gpbo.model.base import Surrogate
from gpbo.model.kernels import Kernel, Matern52
from gpbo.model.likelihood import standardize
from gpbo.posterior import GaussianProcessPosterior
from gpbo.utils.rng import seed as make_key
from gpbo.utils.rng import split

logger = logging.getLogger(__name__)


class GaussianProcessSurrogate(Surrogate):
    """
    Zero-mean Gaussian-process surrogate.

    Parameters
    ----------
    kernel : Kernel | None
        Covariance function. Defaults to Matern52().
    jitter : float, default=1e-6
        α > 0 added to the Gram-matrix diagonal.
    normalize_y : bool, default=True
        Fit on standardised outcomes; predictions are returned on the
        original scale.
    optimize_kernel : bool, default=True
        Refit kernel parameters on every fit(). When False the initial
        parameters are used throughout.
    fit_engine : InferenceEngine | str | None
        Engine used for kernel fitting, or a key of INFERENCE_ENGINES.
        Defaults to MarginalLikelihoodOptimizer().
    fit_config : dict | None
        Constructor arguments when ``fit_engine`` is a string.
    fit_noise : bool, default=False
        Also fit an observation-noise variance on top of ``jitter``.
    noise_bounds : (float, float), default=(1e-6, 1e-1)
        Bounds for the fitted noise variance (standardised scale).
    seed : int, default=0
        Seed for the restart draws when fit() is called without a key.

    Attributes
    ----------
    params : dict
        Current kernel parameters. Only fit() changes them.
    last_fit : KernelFitResult | None
        Outcome of the most recent kernel fit.
    """

    def __init__(
        self,
        kernel: Kernel | None = None,
        *,
        jitter: float = 1e-6,
        normalize_y: bool = True,
        optimize_kernel: bool = True,
        fit_engine: InferenceEngine | str | None = None,
        fit_config: dict | None = None,
        fit_noise: bool = False,
        noise_bounds: tuple[float, float] = (1e-6, 1e-1),
        seed: int = 0,
    ):
        super().__init__()
        if jitter <= 0:
            raise ValueError(f"jitter must be positive, got {jitter}")
        if fit_noise and not 0 < noise_bounds[0] <= noise_bounds[1]:
            raise ValueError(f"noise_bounds must satisfy 0 < low <= high, got {noise_bounds}")
        self.kernel = kernel if kernel is not None else Matern52()
        self.jitter = float(jitter)
        self.normalize_y = normalize_y
        self.optimize_kernel = optimize_kernel
        self.fit_noise = fit_noise
        self.noise_bounds = noise_bounds
        self.fit_engine = _resolve_engine(fit_engine, fit_config)

        self.params: dict = dict(self.kernel.init_params())
        if fit_noise:
            self.params["log_noise"] = jnp.asarray(math.log(noise_bounds[0]))
        self.last_fit: KernelFitResult | None = None
        self._key = make_key(seed)

    def param_bounds(self) -> dict:
        """Log-space bounds of every fitted parameter."""
        bounds = dict(self.kernel.param_bounds())
        if self.fit_noise:
            bounds["log_noise"] = tuple(math.log(b) for b in self.noise_bounds)
        return bounds

    def fit(self, history: History, key: Any = None) -> GaussianProcessPosterior:
        """
        Fit the surrogate to ``history`` and return a posterior snapshot.

        Parameters
        ----------
        history : History
            Evaluations to condition on. May be empty, in which case the
            snapshot predicts the prior.
        key : jax.Array | None
            PRNG key for the kernel-fit restarts. When None, a key is split
            off the surrogate's own seeded key.

        Returns
        -------
        GaussianProcessPosterior
        """
        X, y = history.to_numpy()
        if len(history) == 0:
            self._snapshot = GaussianProcessPosterior(
                self.kernel,
                self.params,
                X,
                y,
                jitter=self.jitter,
                input_dim=getattr(self.kernel, "input_dim", None),
            )
            return self._snapshot

        y_std, y_mean, y_scale = standardize(y, enabled=self.normalize_y)

        # One point carries no information about the length-scale
        if self.optimize_kernel and len(history) >= 2:
            if key is None:
                self._key, key = split(self._key)
            self._refit(jnp.asarray(X), jnp.asarray(y_std), key)

        self._snapshot = GaussianProcessPosterior(
            self.kernel,
            self.params,
            X,
            y_std,
            jitter=self.jitter,
            y_mean=y_mean,
            y_scale=y_scale,
        )
        if self._snapshot.effective_jitter > self.jitter:
            logger.info(
                "Gram matrix ill-conditioned; jitter raised from %.3g to %.3g",
                self.jitter,
                self._snapshot.effective_jitter,
            )
        return self._snapshot

    def _refit(self, X: jnp.ndarray, y: jnp.ndarray, key: jax.Array) -> None:
        result = self.fit_engine.fit(
            self.kernel,
            X,
            y,
            self.jitter,
            init_params=self.params,
            bounds=self.param_bounds(),
            key=key,
        )
        self.last_fit = result
        if result.all_failed:
            warnings.warn(
                f"Kernel fit failed on all {result.n_restarts} restarts; "
                "keeping previous kernel parameters.",
                KernelFitWarning,
                stacklevel=3,
            )
            return
        if not result.improved:
            logger.debug("no restart improved the marginal likelihood; parameters kept")
            return
        self.params = result.params

    def __repr__(self) -> str:
        return (
            f"GaussianProcessSurrogate(kernel={self.kernel!r}, jitter={self.jitter}, "
            f"normalize_y={self.normalize_y}, optimize_kernel={self.optimize_kernel})"
        )


def _resolve_engine(
    fit_engine: InferenceEngine | str | None, fit_config: dict | None
) -> InferenceEngine:
    if fit_engine is None:
        fit_engine = "mll"
    if isinstance(fit_engine, str):
        if fit_engine not in INFERENCE_ENGINES:
            available = ", ".join(INFERENCE_ENGINES.keys())
            raise ValueError(f"Unknown fit_engine: '{fit_engine}'. Available: {available}")
        return INFERENCE_ENGINES[fit_engine](**(fit_config or {}))
    if fit_config is not None:
        raise ValueError("Cannot pass fit_config with an InferenceEngine instance")
    if not isinstance(fit_engine, InferenceEngine):
        raise TypeError(f"fit_engine must be InferenceEngine or str, got {type(fit_engine)}")
    return fit_engine
