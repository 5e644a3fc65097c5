"""
test_config.py
--------------

Tests for OptimizerConfig validation and the collaborators it builds.
"""

import pytest

from gpbo import OptimizerConfig
from gpbo.acquisition import AcquisitionOptimizer
from gpbo.initial_design import LatinHypercubeDesign, SobolDesign
from gpbo.inference import MarginalLikelihoodOptimizer
from gpbo.model import GaussianProcessSurrogate, Matern32, Matern52


class TestDefaults:
    def test_defaults(self):
        config = OptimizerConfig()
        assert config.maximize
        assert config.kernel == "matern52"
        assert config.acquisition == "ei"
        assert config.sign == 1.0
        assert config.kernel_restarts == config.n_restarts_optimizer
        assert config.acquisition_restarts == config.n_restarts_optimizer

    def test_sign_when_minimizing(self):
        assert OptimizerConfig(maximize=False).sign == -1.0

    def test_stage_restart_overrides(self):
        config = OptimizerConfig(n_restarts_optimizer=7, n_restarts_kernel=2)
        assert config.kernel_restarts == 2
        assert config.acquisition_restarts == 7


class TestValidation:
    @pytest.mark.parametrize(
        "options, message",
        [
            ({"n_iters": -1}, "n_iters"),
            ({"n_initial": 0}, "n_initial"),
            ({"jitter": 0.0}, "jitter"),
            ({"n_restarts_optimizer": 0}, "n_restarts_optimizer"),
            ({"n_restarts_acquisition": 0}, "n_restarts_acquisition"),
            ({"improvement_window": 0}, "improvement_window"),
            ({"improvement_threshold": -1.0}, "improvement_threshold"),
            ({"duplicate_tol": -1.0}, "duplicate_tol"),
            ({"evaluation_timeout": 0.0}, "evaluation_timeout"),
            ({"kernel": "periodic"}, "Unknown kernel"),
            ({"acquisition": "pi"}, "Unknown acquisition"),
            ({"initial_design": "grid"}, "Unknown initial_design"),
        ],
    )
    def test_rejects_invalid(self, options, message):
        with pytest.raises(ValueError, match=message):
            OptimizerConfig(**options)

    def test_zero_iterations_allowed(self):
        assert OptimizerConfig(n_iters=0).n_iters == 0

    def test_replace_validates(self):
        config = OptimizerConfig()
        assert config.replace(n_iters=3).n_iters == 3
        with pytest.raises(ValueError):
            config.replace(jitter=-1.0)


class TestFromDict:
    def test_round_trip(self):
        config = OptimizerConfig(kernel="matern32", maximize=False, acquisition_options={"beta": 1.0})
        assert OptimizerConfig.from_dict(config.to_dict()).to_dict() == config.to_dict()

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown option"):
            OptimizerConfig.from_dict({"n_iter": 5})


class TestBuilders:
    def test_build_kernel(self):
        config = OptimizerConfig(kernel="matern32", kernel_params={"lengthscale": 0.2})
        kernel = config.build_kernel(input_dim=2)
        assert isinstance(kernel, Matern32)
        assert kernel.lengthscale == 0.2

    def test_build_kernel_ard_uses_input_dim(self):
        config = OptimizerConfig(kernel_params={"ard": True})
        kernel = config.build_kernel(input_dim=3)
        assert kernel.init_params()["log_lengthscale"].shape == (3,)

    def test_build_surrogate(self):
        config = OptimizerConfig(
            jitter=1e-4, n_restarts_kernel=3, kernel_fit_steps=11, fit_noise=True
        )
        surrogate = config.build_surrogate(input_dim=1)
        assert isinstance(surrogate, GaussianProcessSurrogate)
        assert isinstance(surrogate.kernel, Matern52)
        assert surrogate.jitter == 1e-4
        assert surrogate.fit_noise
        assert isinstance(surrogate.fit_engine, MarginalLikelihoodOptimizer)
        assert surrogate.fit_engine.n_restarts == 3
        assert surrogate.fit_engine.steps == 11

    def test_build_acquisition_optimizer(self):
        config = OptimizerConfig(n_restarts_acquisition=4, acquisition_steps=9)
        optimizer = config.build_acquisition_optimizer()
        assert isinstance(optimizer, AcquisitionOptimizer)
        assert optimizer.n_restarts == 4
        assert optimizer.steps == 9

    @pytest.mark.parametrize("name, cls", [("sobol", SobolDesign), ("lhs", LatinHypercubeDesign)])
    def test_build_initial_design(self, name, cls):
        design = OptimizerConfig(initial_design=name, random_seed=8).build_initial_design()
        assert isinstance(design, cls)
        assert design.seed == 8
