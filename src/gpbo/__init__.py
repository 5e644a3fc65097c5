"""
gpbo
====

Gaussian-process Bayesian optimisation of expensive black-box functions.

Given a scalar objective that is costly to evaluate, gpbo fits a Gaussian
process to every evaluation made so far and uses Expected Improvement to
choose the next input, so that a near-optimal input is found with few
evaluations.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. Kernel (model/kernels.py):
   - Matérn (ν = 1/2, 3/2, 5/2) and RBF covariance functions.
   - Parameters live in log space in a plain dict PyTree.

2. GaussianProcessSurrogate (model/gp.py):
   - Refits kernel parameters by maximum marginal likelihood
     (inference/mll_optimizer.py, Optax + vmapped restarts).
   - Returns an immutable GaussianProcessPosterior snapshot
     (posterior/gp_posterior.py) built on a Cholesky factor with
     escalating jitter.

3. Acquisition (acquisition/):
   - Expected Improvement with closed-form value and analytic gradient,
     Upper Confidence Bound.
   - AcquisitionOptimizer: multi-restart projected gradient ascent.

4. OptimizationLoop (session/optimization_loop.py):
   - INIT -> ITERATING -> DONE; owns the History, evaluates the
     objective once per iteration, stops on budget, convergence, stop
     signal or objective failure.

Unified import style
--------------------
Top-level:
  from gpbo import OptimizationLoop, OptimizerConfig, maximize, minimize
  from gpbo import History, SearchDomain, GaussianProcessSurrogate, Matern52

Subpackages:
  from gpbo.model import Matern12, Matern32, Matern52, RBF, make_kernel
  from gpbo.acquisition import expected_improvement, optimize_acqf, AcquisitionOptimizer
  from gpbo.initial_design import SobolDesign, LatinHypercubeDesign, UniformDesign

Data flow
---------
- History (gpbo.data) holds every (x, y) evaluation in order.
- OptimizationLoop maps inputs to the unit cube and outcomes to
  ``sign * y``, fits the surrogate, maximises the acquisition, maps the
  candidate back, evaluates and appends.

Numerics
--------
Importing gpbo enables 64-bit floats in JAX; Cholesky factorisations of
Gram matrices are not reliable in single precision.

----------------------------------------------------------------------
"""

import jax

jax.config.update("jax_enable_x64", True)

# Import order matters: the model layer must be loaded before the
# posterior and acquisition layers that depend on it.
from . import utils as utils  # noqa: E402
from . import data as data  # noqa: E402
from . import model as model  # noqa: E402
from . import inference as inference  # noqa: E402
from . import posterior as posterior  # noqa: E402
from . import acquisition as acquisition  # noqa: E402
from . import initial_design as initial_design  # noqa: E402
from . import session as session  # noqa: E402

# Acquisition
from .acquisition import (  # noqa: E402
    AcquisitionOptimizer,
    ExpectedImprovement,
    UpperConfidenceBound,
    expected_improvement,
)

# Configuration
from .config import OptimizerConfig  # noqa: E402

# Data handling
from .data import Candidate, History, ObservedPoint, SearchDomain  # noqa: E402
from .exceptions import (  # noqa: E402
    EvaluationCancelledError,
    EvaluationTimeoutError,
    GPBOError,
    KernelFitWarning,
    ObjectiveEvaluationError,
)

# Inference
from .inference import MarginalLikelihoodOptimizer  # noqa: E402

# Core model
from .model import (  # noqa: E402
    RBF,
    GaussianProcessSurrogate,
    Matern12,
    Matern32,
    Matern52,
)

# Posterior
from .posterior import GaussianProcessPosterior, PosteriorQueryResult  # noqa: E402

# Optimisation orchestration
from .session import (  # noqa: E402
    LoopState,
    OptimizationLoop,
    OptimizationResult,
    maximize,
    minimize,
)

__all__ = [
    # Core model
    "GaussianProcessSurrogate",
    "Matern12",
    "Matern32",
    "Matern52",
    "RBF",
    # Inference
    "MarginalLikelihoodOptimizer",
    # Posterior
    "GaussianProcessPosterior",
    "PosteriorQueryResult",
    # Acquisition
    "AcquisitionOptimizer",
    "ExpectedImprovement",
    "UpperConfidenceBound",
    "expected_improvement",
    # Session orchestration
    "LoopState",
    "OptimizationLoop",
    "OptimizationResult",
    "OptimizerConfig",
    "maximize",
    "minimize",
    # Data handling
    "Candidate",
    "History",
    "ObservedPoint",
    "SearchDomain",
    # Errors
    "GPBOError",
    "ObjectiveEvaluationError",
    "EvaluationTimeoutError",
    "EvaluationCancelledError",
    "KernelFitWarning",
    # Subpackages
    "model",
    "inference",
    "posterior",
    "acquisition",
    "initial_design",
    "utils",
    "data",
    "session",
]
