"""
base.py
-------

Abstract base class for kernel-parameter inference engines.

All inference engines must implement a ``fit(kernel, X, y, jitter)``
method that returns a KernelFitResult.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class KernelFitResult:
    """
    Outcome of a kernel-parameter fit.

    Attributes
    ----------
    params : dict
        Best parameters found (the initial parameters when every restart
        failed).
    log_marginal_likelihood : float
        Log marginal likelihood at ``params``; ``-inf`` if it could not be
        evaluated.
    n_restarts : int
        Number of restarts attempted.
    n_failed : int
        Restarts that ended on a non-finite likelihood.
    improved : bool
        Whether ``params`` beats the initial parameters.
    """

    params: dict
    log_marginal_likelihood: float
    n_restarts: int
    n_failed: int
    improved: bool

    @property
    def all_failed(self) -> bool:
        return self.n_failed >= self.n_restarts


class InferenceEngine(ABC):
    """
    Abstract interface for kernel-parameter inference engines.

    Methods
    -------
    fit(kernel, X, y, jitter) -> KernelFitResult
        Fit kernel parameters to data.
    """

    @abstractmethod
    def fit(self, kernel: Any, X: Any, y: Any, jitter: float, **kwargs) -> KernelFitResult:
        """
        Fit kernel parameters to data.

        Parameters
        ----------
        kernel : Kernel
            Covariance function whose parameters are fitted.
        X : jnp.ndarray, shape (n, d)
            Observed inputs.
        y : jnp.ndarray, shape (n,)
            Observed (standardised) outcomes.
        jitter : float
            Diagonal term of the Gram matrix.

        Returns
        -------
        KernelFitResult
        """
        ...
