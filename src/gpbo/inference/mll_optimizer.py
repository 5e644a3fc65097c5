"""
mll_optimizer.py
----------------

Type-II maximum-likelihood fit of kernel parameters using Optax.

Implementation:
- Gradient ascent on the log marginal likelihood (gradient descent on its
  negative), with gradients from jax.value_and_grad.
- Defaults to Adam, but any Optax optimizer can be passed in.
- Multiple restarts: restart 0 starts from the current parameters, the
  others from uniform draws inside the kernel's log-space bounds. All
  restarts run together under jax.vmap; they share only read-only data and
  the best one is picked after all have finished.
- After every step the parameters are clipped back into their bounds.

Connections
-----------
- Calls model.likelihood.log_marginal_likelihood as the objective.
- Returns a KernelFitResult consumed by GaussianProcessSurrogate.fit().
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp
import jax.random as jr
import optax

from gpbo.inference.base import InferenceEngine, KernelFitResult
from gpbo.model.kernels import Kernel
from gpbo.model.likelihood import log_marginal_likelihood

logger = logging.getLogger(__name__)


class MarginalLikelihoodOptimizer(InferenceEngine):
    """
    Multi-restart maximum marginal likelihood optimizer.

    Parameters
    ----------
    steps : int, default=200
        Number of optimization steps per restart.
    learning_rate : float, default=0.05
        Learning rate for the default optimizer (Adam), in log-parameter
        units.
    optimizer : optax.GradientTransformation, optional
        Optax optimizer to use instead of Adam.
    n_restarts : int, default=10
        Number of restarts, including the warm start from the current
        parameters.

    Notes
    -----
    - Loss function = negative log marginal likelihood.
    - A restart whose loss is not finite (e.g. Gram matrix not positive
      definite) counts as failed.
    """

    def __init__(
        self,
        steps: int = 200,
        learning_rate: float = 0.05,
        optimizer: optax.GradientTransformation | None = None,
        n_restarts: int = 10,
        *,
        track_history: bool = False,
        log_every: int = 10,
    ):
        """Create a marginal-likelihood optimizer.

        Parameters
        ----------
        steps : int
            Number of optimization steps.
        learning_rate : float, optional
            Learning rate for the default optimizer (Adam).
        optimizer : optax.GradientTransformation | None
            Optax optimizer to use.
        n_restarts : int
            Number of restarts (>= 1).
        track_history : bool, optional
            When True, record the best loss across restarts during fitting.
        log_every : int, optional
            Record every N steps (also records the last step).
        """
        if steps < 0:
            raise ValueError(f"steps must be non-negative, got {steps}")
        if n_restarts < 1:
            raise ValueError(f"n_restarts must be >= 1, got {n_restarts}")
        self.steps = steps
        self.optimizer = optimizer or optax.adam(learning_rate=learning_rate)
        self.n_restarts = n_restarts
        self.track_history = track_history
        self.log_every = max(1, int(log_every))
        # Exposed after fit() when tracking is enabled
        self.loss_steps: list[int] = []
        self.loss_history: list[float] = []

    def fit(
        self,
        kernel: Kernel,
        X,
        y,
        jitter: float,
        *,
        init_params: dict | None = None,
        bounds: dict | None = None,
        key: jax.Array | None = None,
    ) -> KernelFitResult:
        """
        Fit kernel parameters by maximising the log marginal likelihood.

        Parameters
        ----------
        kernel : Kernel
            Covariance function.
        X : array-like, shape (n, d)
            Observed inputs.
        y : array-like, shape (n,)
            Observed outcomes (standardised).
        jitter : float
            Diagonal term α.
        init_params : dict | None, optional
            Warm-start parameters. Defaults to kernel.init_params().
        bounds : dict | None, optional
            Log-space ``{name: (low, high)}``. Defaults to
            kernel.param_bounds(). Parameters without bounds are neither
            randomised nor clipped.
        key : jax.Array | None, optional
            PRNG key for the random restarts. If None, defaults to key 0.

        Returns
        -------
        KernelFitResult
        """
        X = jnp.asarray(X, dtype=float)
        y = jnp.asarray(y, dtype=float)
        params0 = dict(kernel.init_params() if init_params is None else init_params)
        params0 = {k: jnp.asarray(v, dtype=float) for k, v in params0.items()}
        bounds = dict(kernel.param_bounds() if bounds is None else bounds)
        if key is None:
            key = jr.PRNGKey(0)

        low = {k: jnp.asarray(bounds.get(k, (-jnp.inf, jnp.inf))[0]) for k in params0}
        high = {k: jnp.asarray(bounds.get(k, (-jnp.inf, jnp.inf))[1]) for k in params0}

        def project(params):
            return {k: jnp.clip(v, low[k], high[k]) for k, v in params.items()}

        def loss_fn(params):
            return -log_marginal_likelihood(params, kernel, X, y, jitter)

        params0 = project(params0)
        init_loss = float(loss_fn(params0))

        params = self._restart_params(params0, bounds, key)
        opt_state = jax.vmap(self.optimizer.init)(params)
        value_and_grad = jax.vmap(jax.value_and_grad(loss_fn))

        @jax.jit
        def step(params, opt_state, best_params, best_loss):
            loss, grads = value_and_grad(params)
            # Record the best point seen by each restart before moving on
            better = jnp.isfinite(loss) & (loss < best_loss)
            best_params = {
                k: jnp.where(_expand(better, v), v, best_params[k])
                for k, v in params.items()
            }
            best_loss = jnp.where(better, loss, best_loss)
            grads = {k: jnp.where(jnp.isfinite(g), g, 0.0) for k, g in grads.items()}
            updates, opt_state = jax.vmap(self.optimizer.update)(grads, opt_state, params)
            params = project(optax.apply_updates(params, updates))
            return params, opt_state, best_params, best_loss, loss

        # clear any previous history
        if self.track_history:
            self.loss_steps.clear()
            self.loss_history.clear()

        best_params = params
        best_loss = jnp.full((self.n_restarts,), jnp.inf)
        for i in range(self.steps):
            params, opt_state, best_params, best_loss, loss = step(
                params, opt_state, best_params, best_loss
            )
            if self.track_history and (
                (i % self.log_every == 0) or (i == self.steps - 1)
            ):
                finite = loss[jnp.isfinite(loss)]
                self.loss_steps.append(i)
                self.loss_history.append(
                    float(jnp.min(finite)) if finite.size else float("nan")
                )

        # The final iterate has not been scored yet
        final_loss = jax.vmap(loss_fn)(params)
        better = jnp.isfinite(final_loss) & (final_loss < best_loss)
        best_params = {
            k: jnp.where(_expand(better, v), v, best_params[k]) for k, v in params.items()
        }
        best_loss = jnp.where(better, final_loss, best_loss)

        finite = jnp.isfinite(best_loss)
        n_failed = int(self.n_restarts - jnp.sum(finite))
        if n_failed == self.n_restarts:
            logger.warning(
                "all %d kernel-fit restarts failed; keeping initial parameters",
                self.n_restarts,
            )
            return KernelFitResult(
                params=params0,
                log_marginal_likelihood=-init_loss if jnp.isfinite(init_loss) else -jnp.inf,
                n_restarts=self.n_restarts,
                n_failed=n_failed,
                improved=False,
            )

        idx = int(jnp.argmin(jnp.where(finite, best_loss, jnp.inf)))
        winner = {k: v[idx] for k, v in best_params.items()}
        winner_loss = float(best_loss[idx])
        improved = (not jnp.isfinite(init_loss)) or winner_loss < init_loss
        logger.debug(
            "kernel fit: best lml=%.4f (initial %.4f), %d/%d restarts failed",
            -winner_loss,
            -init_loss,
            n_failed,
            self.n_restarts,
        )
        if not improved:
            winner, winner_loss = params0, init_loss
        return KernelFitResult(
            params=winner,
            log_marginal_likelihood=-winner_loss,
            n_restarts=self.n_restarts,
            n_failed=n_failed,
            improved=bool(improved),
        )

    def _restart_params(self, params0: dict, bounds: dict, key: jax.Array) -> dict:
        """Stack the warm start with uniform draws inside the bounds."""
        n_random = self.n_restarts - 1
        keys = jr.split(key, max(len(params0), 1))
        starts = {}
        for subkey, name in zip(keys, sorted(params0)):
            value = params0[name]
            if name in bounds and n_random > 0:
                lo, hi = bounds[name]
                draws = jr.uniform(
                    subkey, (n_random,) + value.shape, minval=lo, maxval=hi, dtype=value.dtype
                )
            else:
                draws = jnp.broadcast_to(value, (n_random,) + value.shape)
            starts[name] = jnp.concatenate([value[None], draws], axis=0)
        return starts

    # Optional helper
    def get_history(self) -> tuple[list[int], list[float]]:
        """Return (steps, losses) recorded during the last fit when tracking was enabled."""
        return self.loss_steps, self.loss_history


def _expand(mask: jnp.ndarray, like: jnp.ndarray) -> jnp.ndarray:
    """Reshape a per-restart mask (R,) to broadcast against ``like`` (R, ...)."""
    return mask.reshape(mask.shape + (1,) * (like.ndim - 1))
