"""
kernels.py
----------

Covariance functions for the Gaussian-process surrogate.

A kernel object is stateless: it describes a family and its default
initial parameters, while the parameter values themselves live in a plain
dict PyTree owned by the surrogate. That keeps every kernel evaluation a
pure function of ``(params, x, y)`` so jax.grad can differentiate the
marginal likelihood with respect to the parameters.

Parameters are stored in log space (``log_lengthscale``,
``log_variance``), so any real value is a valid (positive) parameter.

Implements:
- Matern12, Matern32, Matern52 : Matérn family with ν = 1/2, 3/2, 5/2
- RBF : squared-exponential (the ν → ∞ limit)
- matern_kernel(nu) : pick the Matérn class for a smoothness value

Examples
--------
>>> import jax.numpy as jnp
>>> kernel = Matern52(lengthscale=0.3)
>>> params = kernel.init_params()
>>> X = jnp.linspace(0, 1, 4)[:, None]
>>> kernel.gram(params, X).shape
(4, 4)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import jax
import jax.numpy as jnp

from gpbo.utils.linalg import safe_norm


class Kernel(ABC):
    """
    Abstract interface for covariance functions.

    Subclasses must implement:
    - init_params() --> initial parameter PyTree (log space)
    - __call__(params, x, y) --> scalar covariance k(x, y)
    - param_bounds() --> log-space box for each parameter
    """

    @abstractmethod
    def init_params(self) -> dict:
        """Return the initial parameter PyTree."""
        ...

    @abstractmethod
    def __call__(self, params: dict, x: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        """
        Covariance between two inputs.

        Parameters
        ----------
        params : dict
            Parameter PyTree as returned by init_params().
        x, y : jnp.ndarray, shape (d,)

        Returns
        -------
        jnp.ndarray
            Scalar covariance.
        """
        ...

    @abstractmethod
    def param_bounds(self) -> dict:
        """
        Return ``{name: (low, high)}`` in log space, broadcastable to params.

        Used to draw random restarts for kernel fitting and to project the
        parameters after every optimiser step.
        """
        ...

    def cross_covariance(
        self, params: dict, X: jnp.ndarray, Y: jnp.ndarray
    ) -> jnp.ndarray:
        """Matrix ``[k(X_i, Y_j)]``, shape (n, m)."""
        row = jax.vmap(self.__call__, in_axes=(None, None, 0))
        return jax.vmap(row, in_axes=(None, 0, None))(params, X, Y)

    def gram(self, params: dict, X: jnp.ndarray) -> jnp.ndarray:
        """Gram matrix ``[k(X_i, X_j)]``, shape (n, n), without jitter."""
        return self.cross_covariance(params, X, X)

    def diag(self, params: dict, X: jnp.ndarray) -> jnp.ndarray:
        """Prior variances ``k(X_i, X_i)``, shape (n,)."""
        return jax.vmap(lambda x: self(params, x, x))(X)


class Stationary(Kernel):
    """
    Stationary kernel ``variance * profile(||x - y|| / lengthscale)``.

    Parameters
    ----------
    lengthscale : float, default=1.0
        Initial length-scale.
    variance : float, default=1.0
        Initial signal variance, equal to k(x, x).
    input_dim : int | None
        Input dimension; required when ``ard=True``.
    ard : bool, default=False
        One length-scale per input dimension (automatic relevance
        determination) instead of a shared one.
    lengthscale_bounds, variance_bounds : (float, float)
        Positive bounds used by kernel fitting.
    """

    def __init__(
        self,
        lengthscale: float = 1.0,
        variance: float = 1.0,
        *,
        input_dim: int | None = None,
        ard: bool = False,
        lengthscale_bounds: tuple[float, float] = (1e-2, 1e2),
        variance_bounds: tuple[float, float] = (1e-2, 1e2),
    ):
        if lengthscale <= 0 or variance <= 0:
            raise ValueError("lengthscale and variance must be positive")
        if ard and input_dim is None:
            raise ValueError("input_dim is required when ard=True")
        for name, (low, high) in (
            ("lengthscale_bounds", lengthscale_bounds),
            ("variance_bounds", variance_bounds),
        ):
            if not 0 < low <= high:
                raise ValueError(f"{name} must satisfy 0 < low <= high, got {(low, high)}")
        self.lengthscale = float(lengthscale)
        self.variance = float(variance)
        self.input_dim = input_dim
        self.ard = ard
        self.lengthscale_bounds = lengthscale_bounds
        self.variance_bounds = variance_bounds

    def init_params(self) -> dict:
        if self.ard:
            log_ls = jnp.full((self.input_dim,), math.log(self.lengthscale))
        else:
            log_ls = jnp.asarray(math.log(self.lengthscale))
        return {
            "log_lengthscale": log_ls,
            "log_variance": jnp.asarray(math.log(self.variance)),
        }

    def param_bounds(self) -> dict:
        return {
            "log_lengthscale": tuple(math.log(b) for b in self.lengthscale_bounds),
            "log_variance": tuple(math.log(b) for b in self.variance_bounds),
        }

    def scaled_distance(self, params: dict, x: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        """``||x - y|| / lengthscale`` (per-dimension scaling under ARD)."""
        lengthscale = jnp.exp(params["log_lengthscale"])
        return safe_norm((x - y) / lengthscale)

    @abstractmethod
    def profile(self, r: jnp.ndarray) -> jnp.ndarray:
        """Correlation as a function of scaled distance, with profile(0) = 1."""
        ...

    def __call__(self, params: dict, x: jnp.ndarray, y: jnp.ndarray) -> jnp.ndarray:
        r = self.scaled_distance(params, x, y)
        return jnp.exp(params["log_variance"]) * self.profile(r)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(lengthscale={self.lengthscale}, "
            f"variance={self.variance}, ard={self.ard})"
        )


class Matern12(Stationary):
    """Matérn ν = 1/2 (exponential) kernel."""

    nu = 0.5

    def profile(self, r):
        return jnp.exp(-r)


class Matern32(Stationary):
    """Matérn ν = 3/2 kernel."""

    nu = 1.5

    def profile(self, r):
        s = jnp.sqrt(3.0) * r
        return (1.0 + s) * jnp.exp(-s)


class Matern52(Stationary):
    """Matérn ν = 5/2 kernel, the usual default for Bayesian optimisation."""

    nu = 2.5

    def profile(self, r):
        s = jnp.sqrt(5.0) * r
        return (1.0 + s + jnp.square(s) / 3.0) * jnp.exp(-s)


class RBF(Stationary):
    """Squared-exponential kernel."""

    nu = math.inf

    def profile(self, r):
        return jnp.exp(-0.5 * jnp.square(r))


_MATERN_BY_NU = {0.5: Matern12, 1.5: Matern32, 2.5: Matern52, math.inf: RBF}


def matern_kernel(nu: float = 2.5, **kwargs) -> Stationary:
    """
    Build the Matérn kernel with smoothness ``nu``.

    Parameters
    ----------
    nu : {0.5, 1.5, 2.5, inf}
        Smoothness. Only the half-integer values with closed forms are
        supported; ``inf`` gives the RBF kernel.
    **kwargs
        Forwarded to the kernel constructor.

    Raises
    ------
    ValueError
        For any other ``nu``.
    """
    try:
        cls = _MATERN_BY_NU[float(nu)]
    except KeyError:
        raise ValueError(
            f"Unsupported nu={nu}. Use one of 0.5, 1.5, 2.5 or inf."
        ) from None
    return cls(**kwargs)


# Registry for string-based kernel selection
KERNELS = {
    "matern12": Matern12,
    "matern32": Matern32,
    "matern52": Matern52,
    "rbf": RBF,
}


def make_kernel(name: str, **kwargs) -> Kernel:
    """
    Instantiate a kernel from its registry name.

    Examples
    --------
    >>> make_kernel("matern32", lengthscale=0.2)
    Matern32(lengthscale=0.2, variance=1.0, ard=False)
    """
    if name not in KERNELS:
        available = ", ".join(KERNELS.keys())
        raise ValueError(f"Unknown kernel: '{name}'. Available: {available}")
    return KERNELS[name](**kwargs)
