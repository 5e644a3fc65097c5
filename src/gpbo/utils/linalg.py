"""
linalg.py
---------

Numerically careful linear-algebra helpers for Gaussian-process code.

Includes:
- add_jitter : add a constant to the diagonal of a square matrix.
- safe_cholesky : Cholesky factor with escalating diagonal jitter.
- cholesky_solve : solve K x = b given the lower Cholesky factor of K.
- safe_norm / safe_sqrt : Euclidean norm and square root whose gradients
  stay finite at zero.

All functions use JAX (jax.numpy) for compatibility with autodiff.

Notes
-----
jnp.linalg.cholesky does not raise on a matrix that is not positive
definite; it returns NaNs. safe_cholesky therefore checks the factor on the
host and retries with a larger jitter, which is why it must be called on
concrete arrays (outside jit).
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np
from jax.scipy.linalg import cho_solve


def add_jitter(K: jnp.ndarray, jitter: float | jnp.ndarray) -> jnp.ndarray:
    """Return ``K + jitter * I``."""
    return K + jitter * jnp.eye(K.shape[0], dtype=K.dtype)


def safe_cholesky(
    K: jnp.ndarray,
    jitter: float,
    *,
    max_tries: int = 8,
    growth: float = 10.0,
) -> tuple[jnp.ndarray, float]:
    """
    Lower Cholesky factor of ``K + jitter * I``, increasing jitter on failure.

    Parameters
    ----------
    K : jnp.ndarray, shape (n, n)
        Symmetric covariance matrix.
    jitter : float
        Initial diagonal term (> 0).
    max_tries : int, default=8
        Number of attempts; attempt ``i`` uses ``jitter * growth**i``.
    growth : float, default=10.0
        Multiplicative jitter increase between attempts.

    Returns
    -------
    L : jnp.ndarray, shape (n, n)
        Lower-triangular factor.
    effective_jitter : float
        Diagonal term that produced a finite factor.

    Raises
    ------
    numpy.linalg.LinAlgError
        If no attempt produced a finite factor (e.g. K contains NaNs).
    """
    if K.shape[0] == 0:
        return jnp.zeros((0, 0), dtype=K.dtype), float(jitter)

    effective = float(jitter)
    for _ in range(max_tries):
        L = jnp.linalg.cholesky(add_jitter(K, effective))
        if bool(jnp.all(jnp.isfinite(L))):
            return L, effective
        effective *= growth
    raise np.linalg.LinAlgError(
        f"Cholesky factorisation failed up to jitter={effective / growth:.3g}"
    )


def cholesky_solve(L: jnp.ndarray, b: jnp.ndarray) -> jnp.ndarray:
    """Solve ``(L L^T) x = b`` for x."""
    return cho_solve((L, True), b)


def safe_norm(x: jnp.ndarray, axis: int = -1) -> jnp.ndarray:
    """
    Euclidean norm along ``axis`` with a zero (not NaN) gradient at 0.

    Stationary kernels evaluate k(x, x) on the diagonal of every Gram
    matrix, so the plain ``sqrt(sum(x**2))`` would poison gradients there.
    """
    sq = jnp.sum(jnp.square(x), axis=axis)
    return safe_sqrt(sq)


def safe_sqrt(v: jnp.ndarray) -> jnp.ndarray:
    """Square root of a non-negative array with gradient 0 where ``v <= 0``."""
    positive = v > 0
    return jnp.where(positive, jnp.sqrt(jnp.where(positive, v, 1.0)), 0.0)
