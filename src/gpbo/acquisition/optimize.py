"""
optimize.py
-----------

Optimization utilities for acquisition functions.

Provides functional interface for maximizing acquisition functions:
- optimize_acqf_discrete: Exhaustive search over candidate set
- optimize_acqf: Gradient-based optimization (continuous)
- optimize_acqf_random: Random search baseline

and the AcquisitionOptimizer used by the optimisation loop.

Design
------
Following BoTorch's functional API:
    X_next, acq_value = optimize_acqf(acq_fn, bounds, q=1)

Gradient-based maximisation:
1. Score ``raw_samples`` uniform points and keep the best ``n_restarts`` as
   starting points.
2. Run projected gradient ascent (Optax, Adam by default) from all starts
   at once under jax.vmap, in unit-cube coordinates, clipping every iterate
   back into the box.
3. Keep the best point visited by each restart, then the best over all
   restarts. Restarts share only the read-only acquisition function.
4. If the surface is flat (e.g. σ = 0 everywhere, so EI is 0) or nothing
   finite was found, return a uniformly random point of the domain.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal

import jax
import jax.numpy as jnp
import jax.random as jr
import numpy as np
import optax

from gpbo.acquisition.base import DifferentiableAcquisition
from gpbo.data import Candidate, SearchDomain
from gpbo.utils.rng import uniform_in_bounds

logger = logging.getLogger(__name__)


def optimize_acqf_discrete(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    candidates: jnp.ndarray,
    q: int = 1,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function over discrete candidate set.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function. Takes (n_candidates, input_dim) array,
        returns (n_candidates,) scores.
    candidates : jnp.ndarray, shape (n_candidates, input_dim)
        Discrete candidate points to evaluate
    q : int, default=1
        Number of points to select (the q best, in descending order)

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Selected candidate points
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values of selected points

    Examples
    --------
    >>> candidates = jnp.array([[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])
    >>> acq = ExpectedImprovement(snapshot, best_f=0.5)
    >>> X_next, acq_val = optimize_acqf_discrete(acq, candidates, q=1)
    """
    candidates = jnp.asarray(candidates, dtype=float)
    if not 1 <= q <= candidates.shape[0]:
        raise ValueError(f"q must be in [1, {candidates.shape[0]}], got {q}")
    acq_values = jnp.asarray(acq_fn(candidates))
    # Non-finite scores are never selected ahead of finite ones
    scores = jnp.where(jnp.isfinite(acq_values), acq_values, -jnp.inf)

    top_indices = jnp.argsort(-scores)[:q]
    return candidates[top_indices], acq_values[top_indices]


def optimize_acqf(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int = 1,
    *,
    method: Literal["gradient", "random"] = "gradient",
    num_restarts: int = 10,
    raw_samples: int = 256,
    optim_steps: int = 100,
    lr: float = 0.02,
    key: Any = None,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function over continuous domain.

    Uses multi-start gradient ascent to find the global optimum.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function. Takes (n_points, input_dim) array,
        returns (n_points,) scores.
    bounds : jnp.ndarray, shape (input_dim, 2)
        Box constraints [[x1_min, x1_max], [x2_min, x2_max], ...]
    q : int, default=1
        Number of points to return: the endpoints of the q best restarts
    method : {"gradient", "random"}, default="gradient"
        Optimization method
    num_restarts : int, default=10
        Number of restarts for gradient ascent
    raw_samples : int, default=256
        Number of random samples screened to choose the restarts
    optim_steps : int, default=100
        Number of optimization steps per restart
    lr : float, default=0.02
        Adam learning rate in unit-cube coordinates
    key : jax.Array | None
        PRNG key for random initialization

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Optimized points
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values at X_next

    Examples
    --------
    >>> bounds = jnp.array([[0.0, 1.0], [0.0, 1.0]])  # 2D unit square
    >>> X_next, acq_val = optimize_acqf(acq, bounds, q=1, method="gradient")

    Notes
    -----
    For gradient-based optimization, the acquisition function must be
    differentiable through JAX, or expose ``value_and_grad(x)``.

    For non-differentiable acquisition functions, use method="random"
    or optimize_acqf_discrete() with a candidate grid.
    """
    if key is None:
        key = jr.PRNGKey(0)

    if method == "random":
        return optimize_acqf_random(acq_fn, bounds, q=q, num_samples=raw_samples, key=key)
    elif method == "gradient":
        if not 1 <= q <= num_restarts:
            raise ValueError(f"q must be in [1, num_restarts={num_restarts}], got {q}")
        optimizer = AcquisitionOptimizer(
            n_restarts=num_restarts,
            raw_samples=raw_samples,
            steps=optim_steps,
            learning_rate=lr,
        )
        domain = SearchDomain.from_bounds(np.asarray(bounds, dtype=float))
        X, values = optimizer.ascend(acq_fn, domain, key)
        scores = np.where(np.isfinite(values), values, -np.inf)
        order = np.argsort(-scores, kind="stable")[:q]
        return jnp.asarray(X[order]), jnp.asarray(values[order])
    else:
        raise ValueError(f"Unknown method: {method}. Use 'gradient' or 'random'.")


def optimize_acqf_random(
    acq_fn: Callable[[jnp.ndarray], jnp.ndarray],
    bounds: jnp.ndarray,
    q: int = 1,
    *,
    num_samples: int = 1000,
    key: Any = None,
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """
    Optimize acquisition function via random search.

    Simple baseline: sample random points, evaluate, select best.

    Parameters
    ----------
    acq_fn : callable
        Acquisition function
    bounds : jnp.ndarray, shape (input_dim, 2)
        Box constraints
    q : int, default=1
        Number of points to select
    num_samples : int, default=1000
        Number of random samples to evaluate
    key : jax.Array | None
        PRNG key

    Returns
    -------
    X_next : jnp.ndarray, shape (q, input_dim)
        Best random samples
    acq_values : jnp.ndarray, shape (q,)
        Acquisition values
    """
    if key is None:
        key = jr.PRNGKey(0)

    bounds = jnp.asarray(bounds, dtype=float)
    samples = uniform_in_bounds(key, bounds[:, 0], bounds[:, 1], num_samples)
    return optimize_acqf_discrete(acq_fn, samples, q=q)


class AcquisitionOptimizer:
    """
    Multi-restart projected gradient ascent over a box domain.

    Parameters
    ----------
    n_restarts : int, default=10
        Number of local ascents.
    raw_samples : int, default=256
        Uniform points scored to choose the starting points.
    steps : int, default=100
        Optimizer steps per restart.
    learning_rate : float, default=0.02
        Learning rate of the default optimizer (Adam), in unit-cube
        coordinates.
    optimizer : optax.GradientTransformation | None
        Optax optimizer to use instead of Adam.
    flat_tol : float, default=1e-12
        Surfaces whose values all lie within this spread, relative to
        their largest magnitude, are treated as flat.
    track_history : bool, default=False
        When True, record the best acquisition value across restarts.
    log_every : int, default=10
        Record every N steps (also records the last step).

    Examples
    --------
    >>> optimizer = AcquisitionOptimizer(n_restarts=16)
    >>> candidate = optimizer.maximize(acq, domain, key=jr.PRNGKey(0))
    >>> candidate.x, candidate.acquisition_value
    """

    def __init__(
        self,
        n_restarts: int = 10,
        raw_samples: int = 256,
        steps: int = 100,
        learning_rate: float = 0.02,
        optimizer: optax.GradientTransformation | None = None,
        *,
        flat_tol: float = 1e-12,
        track_history: bool = False,
        log_every: int = 10,
    ):
        if n_restarts < 1:
            raise ValueError(f"n_restarts must be >= 1, got {n_restarts}")
        if raw_samples < 1:
            raise ValueError(f"raw_samples must be >= 1, got {raw_samples}")
        if steps < 0:
            raise ValueError(f"steps must be non-negative, got {steps}")
        self.n_restarts = n_restarts
        self.raw_samples = raw_samples
        self.steps = steps
        self.optimizer = optimizer or optax.adam(learning_rate=learning_rate)
        self.flat_tol = flat_tol
        self.track_history = track_history
        self.log_every = max(1, int(log_every))
        self.value_steps: list[int] = []
        self.value_history: list[float] = []

    def maximize(
        self,
        acquisition: Callable[[jnp.ndarray], jnp.ndarray],
        domain: SearchDomain,
        key: jax.Array | None = None,
    ) -> Candidate:
        """
        Return the best point found and its acquisition value.

        Parameters
        ----------
        acquisition : callable
            Maps (n, d) inputs to (n,) scores, higher is better.
        domain : SearchDomain
            Feasible box. The returned point always lies inside it.
        key : jax.Array | None
            PRNG key. Identical keys give identical candidates.

        Returns
        -------
        Candidate
        """
        if key is None:
            key = jr.PRNGKey(0)

        if domain.is_degenerate:
            x = np.array(domain.lower, dtype=float)
            return Candidate(x=x, acquisition_value=_score(acquisition, x))

        key_ascent, key_fallback = jr.split(key)
        X, values, raw_values = self._run(acquisition, domain, key_ascent)
        finite = np.isfinite(values)

        if not finite.any() or self._is_flat(raw_values, values[finite]):
            x = domain.sample_uniform(key_fallback, 1)[0]
            logger.debug("acquisition surface is flat; proposing a random point")
            return Candidate(x=x, acquisition_value=_score(acquisition, x))

        idx = int(np.argmax(np.where(finite, values, -np.inf)))
        return Candidate(x=domain.clip(X[idx]), acquisition_value=float(values[idx]))

    def ascend(
        self,
        acquisition: Callable[[jnp.ndarray], jnp.ndarray],
        domain: SearchDomain,
        key: jax.Array,
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Run every local ascent and return its best point.

        Returns
        -------
        X : np.ndarray, shape (n_starts, d)
            Best point visited by each restart, inside the domain.
        values : np.ndarray, shape (n_starts,)
            Acquisition values at X (``-inf`` if never finite).
        """
        X, values, _ = self._run(acquisition, domain, key)
        return X, values

    def _run(self, acquisition, domain: SearchDomain, key: jax.Array):
        lower = jnp.asarray(domain.lower)
        width = jnp.asarray(domain.width)

        raw_u = jr.uniform(key, (self.raw_samples, domain.dim), dtype=lower.dtype)
        raw_values = jnp.asarray(acquisition(lower + raw_u * width))
        raw_values = jnp.where(jnp.isfinite(raw_values), raw_values, -jnp.inf)
        # Ascend on values of order one whatever the outcome units
        scale = _magnitude(raw_values)
        n_starts = min(self.n_restarts, self.raw_samples)
        top = jnp.argsort(-raw_values)[:n_starts]

        value_and_grad = _value_and_grad_fn(acquisition)

        def unit_value_and_grad(u):
            value, grad = value_and_grad(lower + u * width)
            return value / scale, grad * width / scale

        batched = jax.vmap(unit_value_and_grad)

        @jax.jit
        def step(u, opt_state, best_u, best_v):
            v, g = batched(u)
            v = jnp.where(jnp.isfinite(v), v, -jnp.inf)
            better = v > best_v
            best_u = jnp.where(better[:, None], u, best_u)
            best_v = jnp.where(better, v, best_v)
            g = jnp.where(jnp.isfinite(g), g, 0.0)
            # Optax minimises, so feed it the gradient of -acquisition
            updates, opt_state = jax.vmap(self.optimizer.update)(-g, opt_state, u)
            u = jnp.clip(optax.apply_updates(u, updates), 0.0, 1.0)
            return u, opt_state, best_u, best_v, v

        if self.track_history:
            self.value_steps.clear()
            self.value_history.clear()

        u = raw_u[top]
        opt_state = jax.vmap(self.optimizer.init)(u)
        best_u, best_v = u, raw_values[top] / scale
        for i in range(self.steps):
            u, opt_state, best_u, best_v, v = step(u, opt_state, best_u, best_v)
            if self.track_history and ((i % self.log_every == 0) or (i == self.steps - 1)):
                self.value_steps.append(i)
                self.value_history.append(float(jnp.max(v) * scale))

        final_v, _ = batched(u)
        better = jnp.isfinite(final_v) & (final_v > best_v)
        best_u = jnp.where(better[:, None], u, best_u)
        best_v = jnp.where(better, final_v, best_v)

        X = domain.clip(np.asarray(lower + best_u * width))
        return X, np.asarray(best_v * scale), np.asarray(raw_values)

    def _is_flat(self, raw_values: np.ndarray, values: np.ndarray) -> bool:
        raw = raw_values[np.isfinite(raw_values)]
        all_values = np.concatenate([raw, values])
        spread = float(np.max(all_values) - np.min(all_values))
        return spread == 0.0 or spread <= self.flat_tol * float(np.max(np.abs(all_values)))

    # Optional helper
    def get_history(self) -> tuple[list[int], list[float]]:
        """Return (steps, values) recorded during the last ascent when tracking was enabled."""
        return self.value_steps, self.value_history

    def __repr__(self) -> str:
        return (
            f"AcquisitionOptimizer(n_restarts={self.n_restarts}, "
            f"raw_samples={self.raw_samples}, steps={self.steps})"
        )


def _value_and_grad_fn(acquisition):
    """Single-point (value, grad), preferring an analytic gradient."""
    if isinstance(acquisition, DifferentiableAcquisition):
        return acquisition.value_and_grad
    return jax.value_and_grad(lambda x: jnp.asarray(acquisition(x[None, :]))[0])


def _magnitude(values: jnp.ndarray) -> float:
    """Largest finite |value|, or 1.0 when there is none."""
    finite = np.asarray(values)[np.isfinite(np.asarray(values))]
    magnitude = float(np.max(np.abs(finite))) if finite.size else 0.0
    return magnitude if magnitude > 0.0 else 1.0


def _score(acquisition, x: np.ndarray) -> float:
    """Acquisition value at one point, 0.0 when not finite."""
    value = float(jnp.asarray(acquisition(jnp.asarray(x)[None, :]))[0])
    return value if np.isfinite(value) else 0.0
