"""
base.py
-------

Base protocol for acquisition functions.

Design
------
An acquisition function is any callable that
    1. takes query points X of shape (n, d),
    2. returns scores of shape (n,), higher = better.

Callables may additionally expose ``value_and_grad(x)`` for a single point
of shape (d,). The acquisition optimiser uses it when present and falls
back to ``jax.value_and_grad`` otherwise.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

import jax.numpy as jnp


@runtime_checkable
class AcquisitionFunction(Protocol):
    """
    Protocol for acquisition functions.

    Examples
    --------
    >>> def my_acquisition(X):
    ...     result = snapshot.predict(X)
    ...     return result.mean + 2.0 * result.std
    >>> X_next, value = optimize_acqf(my_acquisition, bounds, q=1)
    """

    def __call__(self, X: jnp.ndarray) -> jnp.ndarray:
        """
        Evaluate acquisition function at candidate points.

        Parameters
        ----------
        X : jnp.ndarray, shape (n_candidates, input_dim)
            Candidate points

        Returns
        -------
        jnp.ndarray, shape (n_candidates,)
            Acquisition scores (higher = better)
        """
        ...


@runtime_checkable
class DifferentiableAcquisition(AcquisitionFunction, Protocol):
    """Acquisition function that supplies its own gradient."""

    def value_and_grad(self, x: jnp.ndarray) -> tuple[jnp.ndarray, jnp.ndarray]:
        """
        Value and gradient with respect to a single input.

        Parameters
        ----------
        x : jnp.ndarray, shape (input_dim,)

        Returns
        -------
        value : jnp.ndarray
            Scalar acquisition value.
        grad : jnp.ndarray, shape (input_dim,)
        """
        ...


# Type alias for convenience
AcqFn = Callable[[jnp.ndarray], jnp.ndarray]
