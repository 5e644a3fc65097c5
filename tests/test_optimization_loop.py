"""
test_optimization_loop.py
-------------------------

End-to-end tests for OptimizationLoop and the maximize/minimize entry points.

Coverage:
- Finding the maximum of a one-dimensional quadratic
- Minimisation, single-point and partially fixed domains
- Reproducibility for a fixed seed
- Objective failures, non-finite outcomes and timeouts end the run with
  the History so far
- Stop signals before and during an evaluation
- Convergence criteria, initial points and state errors
"""

import logging
import threading

import numpy as np
import pytest

from gpbo import (
    EvaluationCancelledError,
    EvaluationTimeoutError,
    History,
    LoopState,
    ObjectiveEvaluationError,
    OptimizationLoop,
    OptimizerConfig,
    maximize,
    minimize,
)
from gpbo.acquisition import AcquisitionOptimizer
from gpbo.data import Candidate

# Cheaper inner optimisation for tests that do not check solution quality
FAST = dict(
    kernel_fit_steps=40,
    acquisition_steps=30,
    acquisition_raw_samples=64,
    n_restarts_optimizer=4,
)


class CountingObjective:
    """Wraps an objective and counts its calls."""

    def __init__(self, fn):
        self.fn = fn
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return self.fn(x)


class StuckOptimizer(AcquisitionOptimizer):
    """Always proposes the lower corner of the domain."""

    def maximize(self, acquisition, domain, key=None):
        return Candidate(x=np.array(domain.lower), acquisition_value=1.0)


@pytest.fixture
def release():
    """Event that unblocks objectives left running in worker threads."""
    event = threading.Event()
    yield event
    event.set()


# ============================================================================
# Optimisation quality
# ============================================================================


class TestQuadratic:
    def test_finds_maximum(self, quadratic, interval):
        config = OptimizerConfig(
            n_iters=15,
            n_initial=3,
            initial_design="uniform",
            kernel="matern52",
            jitter=1e-4,
            random_seed=0,
        )
        result = OptimizationLoop(quadratic, interval, config).run()

        assert result.status == "completed"
        assert result.success
        assert len(result.history) == 18
        assert result.n_iterations == 15
        assert abs(result.x_best[0] - 1.0) < 0.1
        assert abs(result.y_best) < 0.05

    def test_minimize(self, interval):
        result = minimize(
            lambda x: float((x[0] - 1.0) ** 2),
            interval,
            n_iters=12,
            n_initial=3,
            jitter=1e-4,
        )
        assert result.status == "completed"
        assert result.y_best == min(result.history.outcomes)
        assert abs(result.x_best[0] - 1.0) < 0.15

    def test_reproducible(self, quadratic, interval):
        a = maximize(quadratic, interval, n_iters=4, n_initial=3, random_seed=7, **FAST)
        b = maximize(quadratic, interval, n_iters=4, n_initial=3, random_seed=7, **FAST)
        np.testing.assert_array_equal(a.history.to_numpy()[0], b.history.to_numpy()[0])
        np.testing.assert_array_equal(a.history.to_numpy()[1], b.history.to_numpy()[1])

    @pytest.mark.parametrize("factor", [1e-13, 1e6])
    def test_invariant_to_outcome_units(self, quadratic, interval, factor):
        kwargs = dict(n_iters=5, n_initial=3, random_seed=3, **FAST)
        base = maximize(quadratic, interval, **kwargs)
        scaled = maximize(lambda x: factor * quadratic(x), interval, **kwargs)
        np.testing.assert_allclose(
            scaled.history.to_numpy()[0], base.history.to_numpy()[0], atol=1e-5
        )

    def test_every_input_inside_domain(self):
        objective = lambda x: -float(np.sum(np.square(x - 3.0)))  # noqa: E731
        bounds = [(-1.0, 1.0), (0.0, 2.0)]
        result = maximize(objective, bounds, n_iters=5, n_initial=3, **FAST)
        X, _ = result.history.to_numpy()
        assert np.all(X >= [-1.0, 0.0]) and np.all(X <= [1.0, 2.0])


# ============================================================================
# Domains
# ============================================================================


class TestDomains:
    def test_single_point_domain(self):
        objective = CountingObjective(lambda x: float(x[0] + x[1]))
        result = maximize(objective, [(0.5, 0.5), (2.0, 2.0)], n_iters=10)
        assert objective.calls == 1
        assert result.status == "completed"
        assert result.n_iterations == 0
        np.testing.assert_array_equal(result.x_best, [0.5, 2.0])
        assert result.y_best == 2.5

    def test_fixed_dimension(self):
        result = maximize(
            lambda x: -float(x[0] ** 2), [(-1.0, 1.0), (3.0, 3.0)], n_iters=3, n_initial=3, **FAST
        )
        X, _ = result.history.to_numpy()
        np.testing.assert_array_equal(X[:, 1], 3.0)

    def test_bounds_as_sequence(self, quadratic):
        loop = OptimizationLoop(quadratic, [(-2.0, 2.0)], OptimizerConfig(**FAST))
        assert loop.domain.dim == 1


# ============================================================================
# Failures
# ============================================================================


class TestFailures:
    def test_objective_exception_keeps_history(self, interval):
        def objective(x):
            if objective.calls == 4:
                raise RuntimeError("simulator crashed")
            objective.calls += 1
            return float(x[0])

        objective.calls = 0
        result = maximize(objective, interval, n_iters=5, n_initial=3, **FAST)
        assert result.status == "failed"
        assert not result.success
        assert len(result.history) == 4
        assert isinstance(result.error, ObjectiveEvaluationError)
        assert isinstance(result.error.__cause__, RuntimeError)
        assert result.best is not None

    def test_failure_during_initial_design(self, interval):
        result = maximize(lambda x: float("nan"), interval, n_iters=5, n_initial=3)
        assert result.status == "failed"
        assert len(result.history) == 0
        assert result.best is None

    @pytest.mark.parametrize("bad", [float("inf"), np.array([1.0, 2.0]), "1.0"])
    def test_invalid_outcome(self, interval, bad):
        outcomes = iter([0.0, 1.0, 2.0, bad])
        result = maximize(lambda x: next(outcomes), interval, n_iters=5, n_initial=3, **FAST)
        assert result.status == "failed"
        assert len(result.history) == 3
        assert isinstance(result.error, ObjectiveEvaluationError)

    def test_timeout(self, interval, release):
        def objective(x):
            objective.calls += 1
            if objective.calls > 3:
                release.wait(10.0)
            return float(x[0])

        objective.calls = 0
        result = maximize(
            objective, interval, n_iters=5, n_initial=3, evaluation_timeout=0.2, **FAST
        )
        assert result.status == "failed"
        assert isinstance(result.error, EvaluationTimeoutError)
        assert len(result.history) == 3

    def test_logs_failure(self, interval, caplog):
        def objective(x):
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR, logger="gpbo"):
            maximize(objective, interval, n_iters=1, n_initial=1)
        assert "boom" in caplog.text


# ============================================================================
# Cancellation
# ============================================================================


class TestCancellation:
    def test_stop_before_iterations(self, quadratic, interval):
        stop = threading.Event()
        stop.set()
        result = maximize(quadratic, interval, stop_event=stop, n_iters=5, n_initial=3, **FAST)
        assert result.status == "cancelled"
        assert result.n_iterations == 0
        assert len(result.history) == 3

    def test_stop_between_iterations(self, interval):
        stop = threading.Event()

        def objective(x):
            objective.calls += 1
            if objective.calls == 5:
                stop.set()
            return -float(x[0] ** 2)

        objective.calls = 0
        result = maximize(
            objective, interval, stop_event=stop, n_iters=10, n_initial=3, **FAST
        )
        assert result.status == "cancelled"
        assert result.n_iterations == 2
        assert len(result.history) == 5

    def test_stop_during_evaluation(self, interval, release):
        stop = threading.Event()

        def objective(x):
            objective.calls += 1
            if objective.calls == 5:
                stop.set()
                release.wait(10.0)
            return -float(x[0] ** 2)

        objective.calls = 0
        result = maximize(
            objective, interval, stop_event=stop, n_iters=10, n_initial=3, **FAST
        )
        assert result.status == "cancelled"
        assert isinstance(result.error, EvaluationCancelledError)
        # The abandoned evaluation is not recorded
        assert len(result.history) == 4


# ============================================================================
# Convergence
# ============================================================================


class TestConvergence:
    def test_acquisition_threshold(self, quadratic, interval):
        result = maximize(
            quadratic, interval, n_iters=10, n_initial=3, convergence_threshold=1e9, **FAST
        )
        assert result.status == "converged"
        assert result.success
        assert result.n_iterations == 1

    def test_improvement_threshold(self, interval):
        result = maximize(
            lambda x: 1.0,
            interval,
            n_iters=10,
            n_initial=3,
            improvement_threshold=1e-3,
            improvement_window=2,
            **FAST,
        )
        assert result.status == "converged"
        assert result.n_iterations == 2

    def test_zero_iterations(self, quadratic, interval):
        result = maximize(quadratic, interval, n_iters=0, n_initial=4)
        assert result.status == "completed"
        assert len(result.history) == 4


# ============================================================================
# Initial points
# ============================================================================


class TestInitialPoints:
    def test_supplied_points_are_not_reevaluated(self, quadratic, interval):
        objective = CountingObjective(quadratic)
        X = np.array([[-1.5], [0.0], [1.8]])
        y = np.array([quadratic(x) for x in X])
        result = maximize(objective, interval, initial_points=(X, y), n_iters=3, **FAST)
        assert objective.calls == 3
        assert len(result.history) == 6
        np.testing.assert_array_equal(result.history.to_numpy()[0][:3], X)

    def test_history_as_initial_points(self, quadratic, interval):
        history = History.from_arrays([[0.5], [-0.5]], [quadratic([0.5]), quadratic([-0.5])])
        loop = OptimizationLoop(quadratic, interval, OptimizerConfig(n_iters=1, **FAST))
        loop.initialize(history)
        assert loop.state is LoopState.ITERATING
        assert len(loop.history) == 2

    def test_outside_domain(self, quadratic, interval):
        with pytest.raises(ValueError, match="outside the domain"):
            maximize(quadratic, interval, initial_points=([[3.0]], [0.0]))

    def test_wrong_dimension(self, quadratic, interval):
        with pytest.raises(ValueError, match="dimension"):
            maximize(quadratic, interval, initial_points=([[0.0, 1.0]], [0.0]))

    def test_empty(self, quadratic, interval):
        with pytest.raises(ValueError, match="at least one"):
            maximize(quadratic, interval, initial_points=History())


# ============================================================================
# Loop mechanics
# ============================================================================


class TestLoopMechanics:
    def test_state_machine(self, quadratic, interval):
        loop = OptimizationLoop(quadratic, interval, OptimizerConfig(n_iters=2, n_initial=2, **FAST))
        assert loop.state is LoopState.INIT
        with pytest.raises(RuntimeError, match="initialize"):
            loop.step()

        loop.initialize()
        assert loop.state is LoopState.ITERATING
        with pytest.raises(RuntimeError):
            loop.initialize()

        loop.step()
        loop.step()
        assert loop.state is LoopState.DONE
        assert len(loop.candidates) == 2
        assert loop.snapshot is not None
        with pytest.raises(RuntimeError, match="done"):
            loop.step()
        with pytest.raises(RuntimeError, match="done"):
            loop.run()

    def test_initial_points_after_initialize(self, quadratic, interval):
        loop = OptimizationLoop(quadratic, interval, OptimizerConfig(n_iters=2, n_initial=2, **FAST))
        loop.initialize()
        with pytest.raises(ValueError, match="already"):
            loop.run(initial_points=([[0.0]], [-1.0]))

    def test_duplicate_candidate_replaced(self, quadratic, interval, caplog):
        config = OptimizerConfig(n_iters=1, **FAST)
        loop = OptimizationLoop(
            quadratic, interval, config, acquisition_optimizer=StuckOptimizer()
        )
        loop.initialize(([[-2.0], [0.0]], [quadratic([-2.0]), quadratic([0.0])]))
        with caplog.at_level(logging.WARNING, logger="gpbo"):
            candidate = loop.step()
        assert "duplicates" in caplog.text
        assert candidate.x[0] != -2.0
        assert interval.contains(candidate.x)

    def test_logs_iterations(self, quadratic, interval, caplog):
        with caplog.at_level(logging.INFO, logger="gpbo"):
            maximize(quadratic, interval, n_iters=2, n_initial=2, **FAST)
        assert "iteration 2/2" in caplog.text

    def test_objective_must_be_callable(self, interval):
        with pytest.raises(TypeError, match="callable"):
            OptimizationLoop(42, interval)

    def test_maximize_option_rejected(self, quadratic, interval):
        with pytest.raises(ValueError, match="maximize"):
            maximize(quadratic, interval, maximize=False)

    def test_unknown_option_rejected(self, quadratic, interval):
        with pytest.raises(ValueError, match="Unknown option"):
            maximize(quadratic, interval, n_iter=3)
