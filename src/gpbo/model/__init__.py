"""
gpbo.model
==========

Model-layer API: everything surrogate-related in one place.

Includes
--------
- Surrogate (abstract base) and GaussianProcessSurrogate
- Kernels (Matern12, Matern32, Matern52, RBF) and the KERNELS registry
- log_marginal_likelihood and outcome standardisation

All functions/classes use JAX arrays (jax.numpy as jnp) for autodiff
and optimization with Optax.

Typical usage
-------------
    from gpbo.model import GaussianProcessSurrogate, Matern52
"""

from .base import Surrogate
from .kernels import (
    KERNELS,
    RBF,
    Kernel,
    Matern12,
    Matern32,
    Matern52,
    Stationary,
    make_kernel,
    matern_kernel,
)
from .likelihood import log_marginal_likelihood, standardize
from .gp import GaussianProcessSurrogate

__all__ = [
    # Base
    "Surrogate",
    # Models
    "GaussianProcessSurrogate",
    # Kernels
    "Kernel",
    "Stationary",
    "Matern12",
    "Matern32",
    "Matern52",
    "RBF",
    "matern_kernel",
    "make_kernel",
    "KERNELS",
    # Likelihood
    "log_marginal_likelihood",
    "standardize",
]
