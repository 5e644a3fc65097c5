"""
inference
=========

Kernel-parameter fitting for the Gaussian-process surrogate.

This subpackage provides strategies for choosing kernel parameters from
data; each returns a KernelFitResult.

Implementations
---------------
- MarginalLikelihoodOptimizer : type-II maximum likelihood with Optax and
  vectorised random restarts.
"""

from .base import InferenceEngine, KernelFitResult
from .mll_optimizer import MarginalLikelihoodOptimizer

# Registry for string-based inference selection
INFERENCE_ENGINES = {
    "mll": MarginalLikelihoodOptimizer,
}

__all__ = [
    "InferenceEngine",
    "KernelFitResult",
    "MarginalLikelihoodOptimizer",
    "INFERENCE_ENGINES",
]
