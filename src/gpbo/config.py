"""
config.py
---------

Configuration of an optimisation run.

OptimizerConfig gathers every recognised option in one validated dataclass
and knows how to build the collaborators of the loop from them (kernel,
surrogate, acquisition optimiser, initial design).

Examples
--------
>>> config = OptimizerConfig(n_iters=15, n_initial=3, jitter=1e-4, random_seed=1)
>>> config = OptimizerConfig.from_dict({"kernel": "matern32", "maximize": False})
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from gpbo.acquisition import ACQUISITIONS, AcquisitionOptimizer
from gpbo.inference import MarginalLikelihoodOptimizer
from gpbo.initial_design import INITIAL_DESIGNS, InitialDesign, make_initial_design
from gpbo.model import KERNELS, GaussianProcessSurrogate, Kernel, make_kernel


@dataclass
class OptimizerConfig:
    """
    Options of an optimisation run.

    Attributes
    ----------
    n_iters : int
        Evaluation budget after the initial design (one objective call per
        iteration).
    n_initial : int
        Size of the initial design when no initial points are supplied.
    initial_design : {"sobol", "lhs", "uniform"}
        Initial design provider.
    kernel : {"matern12", "matern32", "matern52", "rbf"}
        Kernel family.
    kernel_params : dict
        Keyword arguments of the kernel (``lengthscale``, ``variance``,
        ``ard``, bounds). Inputs are scaled to the unit cube, so
        length-scales are relative to the domain width.
    jitter : float
        α added to the Gram-matrix diagonal.
    n_restarts_optimizer : int
        Restart count for kernel fitting and acquisition maximisation.
    n_restarts_kernel, n_restarts_acquisition : int | None
        Per-stage overrides of ``n_restarts_optimizer``.
    random_seed : int
        Seed of every random choice in the run.
    convergence_threshold : float | None
        Stop once the proposed candidate's acquisition value falls below
        this value.
    improvement_threshold : float | None
        Stop once the best outcome improved by less than this over the last
        ``improvement_window`` iterations.
    improvement_window : int
        Trailing window for ``improvement_threshold``.
    maximize : bool
        Whether larger outcomes are better.
    acquisition : {"ei", "ucb"}
        Acquisition function.
    acquisition_options : dict
        Extra keyword arguments of the acquisition (e.g. ``beta`` for UCB).
    normalize_y, optimize_kernel, fit_noise : bool
        Surrogate options, see GaussianProcessSurrogate.
    kernel_fit_steps : int
        Optimizer steps per kernel-fit restart.
    kernel_fit_learning_rate : float
        Adam learning rate of the kernel fit (log-parameter units).
    acquisition_raw_samples : int
        Uniform points screened before acquisition ascent.
    acquisition_steps : int
        Ascent steps per acquisition restart.
    acquisition_learning_rate : float
        Adam learning rate of the acquisition ascent (unit-cube units).
    duplicate_tol : float
        Candidates within this max-norm distance (unit cube) of an
        evaluated input are replaced by a random point.
    evaluation_timeout : float | None
        Seconds allowed per objective evaluation.
    """

    n_iters: int = 20
    n_initial: int = 5
    initial_design: str = "sobol"
    kernel: str = "matern52"
    kernel_params: dict = field(default_factory=dict)
    jitter: float = 1e-6
    n_restarts_optimizer: int = 10
    n_restarts_kernel: int | None = None
    n_restarts_acquisition: int | None = None
    random_seed: int = 0
    convergence_threshold: float | None = None
    improvement_threshold: float | None = None
    improvement_window: int = 5
    maximize: bool = True
    acquisition: str = "ei"
    acquisition_options: dict = field(default_factory=dict)
    normalize_y: bool = True
    optimize_kernel: bool = True
    fit_noise: bool = False
    kernel_fit_steps: int = 200
    kernel_fit_learning_rate: float = 0.05
    acquisition_raw_samples: int = 256
    acquisition_steps: int = 100
    acquisition_learning_rate: float = 0.02
    duplicate_tol: float = 1e-6
    evaluation_timeout: float | None = None

    def __post_init__(self):
        """Validate configuration."""
        if self.n_iters < 0:
            raise ValueError(f"n_iters must be non-negative, got {self.n_iters}")
        if self.n_initial < 1:
            raise ValueError(f"n_initial must be >= 1, got {self.n_initial}")
        if self.jitter <= 0:
            raise ValueError(f"jitter must be positive, got {self.jitter}")
        for name in ("n_restarts_optimizer", "n_restarts_kernel", "n_restarts_acquisition"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        if self.improvement_window < 1:
            raise ValueError(
                f"improvement_window must be >= 1, got {self.improvement_window}"
            )
        if self.improvement_threshold is not None and self.improvement_threshold < 0:
            raise ValueError(
                f"improvement_threshold must be non-negative, got {self.improvement_threshold}"
            )
        if self.duplicate_tol < 0:
            raise ValueError(f"duplicate_tol must be non-negative, got {self.duplicate_tol}")
        if self.evaluation_timeout is not None and self.evaluation_timeout <= 0:
            raise ValueError(
                f"evaluation_timeout must be positive, got {self.evaluation_timeout}"
            )
        for name, registry, value in (
            ("kernel", KERNELS, self.kernel),
            ("acquisition", ACQUISITIONS, self.acquisition),
            ("initial_design", INITIAL_DESIGNS, self.initial_design),
        ):
            if value not in registry:
                available = ", ".join(registry.keys())
                raise ValueError(f"Unknown {name}: '{value}'. Available: {available}")

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def kernel_restarts(self) -> int:
        return self.n_restarts_kernel or self.n_restarts_optimizer

    @property
    def acquisition_restarts(self) -> int:
        return self.n_restarts_acquisition or self.n_restarts_optimizer

    @property
    def sign(self) -> float:
        """+1 when maximising, -1 when minimising."""
        return 1.0 if self.maximize else -1.0

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> OptimizerConfig:
        """
        Build a config from a plain dict, rejecting unknown keys.

        Raises
        ------
        ValueError
            If ``options`` contains a key that is not a config field.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(
                f"Unknown option(s): {', '.join(unknown)}. Available: {', '.join(sorted(known))}"
            )
        return cls(**options)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def replace(self, **changes) -> OptimizerConfig:
        """Return a copy with ``changes`` applied (and validated)."""
        return dataclasses.replace(self, **changes)

    def build_kernel(self, input_dim: int) -> Kernel:
        params = dict(self.kernel_params)
        if params.get("ard"):
            params.setdefault("input_dim", input_dim)
        return make_kernel(self.kernel, **params)

    def build_surrogate(self, input_dim: int) -> GaussianProcessSurrogate:
        engine = MarginalLikelihoodOptimizer(
            steps=self.kernel_fit_steps,
            learning_rate=self.kernel_fit_learning_rate,
            n_restarts=self.kernel_restarts,
        )
        return GaussianProcessSurrogate(
            self.build_kernel(input_dim),
            jitter=self.jitter,
            normalize_y=self.normalize_y,
            optimize_kernel=self.optimize_kernel,
            fit_engine=engine,
            fit_noise=self.fit_noise,
            seed=self.random_seed,
        )

    def build_acquisition_optimizer(self) -> AcquisitionOptimizer:
        return AcquisitionOptimizer(
            n_restarts=self.acquisition_restarts,
            raw_samples=self.acquisition_raw_samples,
            steps=self.acquisition_steps,
            learning_rate=self.acquisition_learning_rate,
        )

    def build_initial_design(self) -> InitialDesign:
        return make_initial_design(self.initial_design, seed=self.random_seed)
