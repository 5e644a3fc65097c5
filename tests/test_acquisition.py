"""
test_acquisition.py
-------------------

Tests for acquisition functions and their maximisation.

Coverage:
- Expected Improvement closed form, non-negativity, σ = 0 and minimisation
- Analytic EI gradient against automatic differentiation, from one posterior
  query
- Upper Confidence Bound in both directions
- Discrete, random and gradient-based acquisition optimisation
- AcquisitionOptimizer determinism, domain containment and flat-surface
  fallback, independent of the units of the acquisition
"""

import jax
import jax.numpy as jnp
import jax.random as jr
import numpy as np
import pytest
from scipy.stats import norm

from gpbo.acquisition import (
    AcquisitionOptimizer,
    DifferentiableAcquisition,
    ExpectedImprovement,
    UpperConfidenceBound,
    expected_improvement,
    log_expected_improvement,
    make_acquisition,
    optimize_acqf,
    optimize_acqf_discrete,
    optimize_acqf_random,
    upper_confidence_bound,
)
from gpbo.data import Candidate, SearchDomain
from gpbo.posterior import PosteriorQueryResult

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def query():
    return PosteriorQueryResult(
        mean=jnp.array([0.0, 0.5, 1.0, 2.0, -1.0]),
        variance=jnp.array([1.0, 0.25, 4.0, 0.0, 0.01]),
    )


@pytest.fixture
def unit_square():
    return SearchDomain.unit(2)


class CountingPosterior:
    """Delegates to a posterior snapshot and counts mean_and_std calls."""

    def __init__(self, posterior):
        self.posterior = posterior
        self.calls = 0

    def predict(self, X):
        return self.posterior.predict(X)

    def mean_and_std(self, x):
        self.calls += 1
        return self.posterior.mean_and_std(x)


def bump(X):
    """Smooth acquisition with its maximum at (0.3, 0.7)."""
    X = jnp.atleast_2d(X)
    return -jnp.sum(jnp.square(X - jnp.array([0.3, 0.7])), axis=-1)


# ============================================================================
# Expected Improvement
# ============================================================================


class TestExpectedImprovement:
    def test_matches_closed_form(self):
        mean, var, best_f = 1.0, 4.0, 0.5
        z = (mean - best_f) / 2.0
        expected = (mean - best_f) * norm.cdf(z) + 2.0 * norm.pdf(z)
        ei = expected_improvement(PosteriorQueryResult(jnp.array([mean]), jnp.array([var])), best_f)
        assert float(ei[0]) == pytest.approx(expected, rel=1e-10)

    def test_non_negative(self, query):
        for best_f in (-5.0, 0.0, 0.7, 10.0):
            ei = expected_improvement(query, best_f)
            assert jnp.all(ei >= 0.0)
            assert jnp.all(jnp.isfinite(ei))

    def test_zero_without_uncertainty(self):
        result = PosteriorQueryResult(jnp.array([3.0, -1.0]), jnp.array([0.0, 0.0]))
        ei = expected_improvement(result, best_f=0.0)
        np.testing.assert_array_equal(ei, [0.0, 0.0])

    def test_increases_with_mean(self):
        result = PosteriorQueryResult(jnp.array([0.0, 0.5, 1.0]), jnp.full(3, 0.3))
        ei = expected_improvement(result, best_f=0.4)
        assert ei[0] < ei[1] < ei[2]

    def test_minimization_mirrors_maximization(self, query):
        flipped = PosteriorQueryResult(-query.mean, query.variance)
        np.testing.assert_allclose(
            expected_improvement(query, 0.3, maximize=False),
            expected_improvement(flipped, -0.3),
        )

    def test_log_expected_improvement_preserves_order(self, query):
        ei = expected_improvement(query, 0.5)
        log_ei = log_expected_improvement(query, 0.5)
        assert jnp.all(jnp.isfinite(log_ei))
        np.testing.assert_array_equal(jnp.argsort(ei[ei > 0]), jnp.argsort(log_ei[ei > 0]))

    def test_bound_to_snapshot(self, snapshot_1d):
        acq = ExpectedImprovement(snapshot_1d, best_f=snapshot_1d.best_observed())
        X = jnp.linspace(0.0, 1.0, 21)[:, None]
        expected = expected_improvement(snapshot_1d.predict(X), snapshot_1d.best_observed())
        np.testing.assert_allclose(acq(X), expected)
        assert isinstance(acq, DifferentiableAcquisition)

    @pytest.mark.parametrize("maximize", [True, False])
    @pytest.mark.parametrize("x", [0.18, 0.42, 0.83])
    def test_analytic_gradient_matches_autodiff(self, snapshot_1d, x, maximize):
        acq = ExpectedImprovement(snapshot_1d, best_f=0.2, maximize=maximize)
        x = jnp.array([x])
        value, grad = acq.value_and_grad(x)
        autodiff = jax.grad(lambda u: acq(u[None, :])[0])(x)
        assert float(value) == pytest.approx(float(acq(x[None, :])[0]))
        np.testing.assert_allclose(grad, autodiff, rtol=1e-6, atol=1e-10)

    def test_value_and_grad_queries_posterior_once(self, snapshot_1d):
        counting = CountingPosterior(snapshot_1d)
        acq = ExpectedImprovement(counting, best_f=0.2)
        acq.value_and_grad(jnp.array([0.42]))
        assert counting.calls == 1


# ============================================================================
# Upper Confidence Bound
# ============================================================================


class TestUpperConfidenceBound:
    def test_values(self, query):
        std = jnp.sqrt(query.variance)
        np.testing.assert_allclose(
            upper_confidence_bound(query, beta=2.0), query.mean + 2.0 * std
        )
        np.testing.assert_allclose(
            upper_confidence_bound(query, beta=2.0, maximize=False), -query.mean + 2.0 * std
        )

    def test_beta_zero_is_greedy(self, query):
        np.testing.assert_allclose(upper_confidence_bound(query, beta=0.0), query.mean)

    def test_negative_beta_rejected(self, snapshot_1d):
        with pytest.raises(ValueError, match="beta"):
            UpperConfidenceBound(snapshot_1d, beta=-1.0)

    def test_value_and_grad(self, snapshot_1d):
        acq = UpperConfidenceBound(snapshot_1d, beta=1.5)
        x = jnp.array([0.42])
        value, grad = acq.value_and_grad(x)
        autodiff = jax.grad(lambda u: acq(u[None, :])[0])(x)
        assert float(value) == pytest.approx(float(acq(x[None, :])[0]))
        np.testing.assert_allclose(grad, autodiff, rtol=1e-6)


class TestMakeAcquisition:
    def test_expected_improvement(self, snapshot_1d):
        acq = make_acquisition("ei", snapshot_1d, 0.3, maximize=False)
        assert isinstance(acq, ExpectedImprovement)
        assert acq.best_f == 0.3
        assert not acq.maximize

    def test_upper_confidence_bound_options(self, snapshot_1d):
        acq = make_acquisition("ucb", snapshot_1d, 0.3, beta=0.5)
        assert isinstance(acq, UpperConfidenceBound)
        assert acq.beta == 0.5

    def test_unknown(self, snapshot_1d):
        with pytest.raises(ValueError, match="Available"):
            make_acquisition("pi", snapshot_1d, 0.0)


# ============================================================================
# Functional optimisation
# ============================================================================


class TestOptimizeAcqfDiscrete:
    def test_selects_best(self):
        candidates = jnp.array([[0.0], [0.3], [0.6], [0.9]])
        X, values = optimize_acqf_discrete(lambda X: -jnp.abs(X[:, 0] - 0.55), candidates, q=2)
        np.testing.assert_allclose(X, [[0.6], [0.3]])
        assert values[0] >= values[1]

    def test_non_finite_never_selected(self):
        candidates = jnp.array([[0.0], [1.0], [2.0]])
        scores = jnp.array([jnp.nan, 1.0, jnp.inf * 0.0])
        X, _ = optimize_acqf_discrete(lambda X: scores, candidates)
        np.testing.assert_allclose(X, [[1.0]])

    def test_invalid_q(self):
        with pytest.raises(ValueError, match="q"):
            optimize_acqf_discrete(lambda X: X[:, 0], jnp.zeros((2, 1)), q=3)


class TestOptimizeAcqf:
    def test_random_search_in_bounds(self):
        bounds = jnp.array([[0.0, 1.0], [-1.0, 0.0]])
        X, values = optimize_acqf_random(bump, bounds, q=3, num_samples=200, key=jr.PRNGKey(0))
        assert X.shape == (3, 2)
        assert jnp.all((X >= bounds[:, 0]) & (X <= bounds[:, 1]))

    def test_gradient_finds_maximum(self):
        bounds = jnp.array([[0.0, 1.0], [0.0, 1.0]])
        X, values = optimize_acqf(bump, bounds, q=1, optim_steps=200, key=jr.PRNGKey(0))
        np.testing.assert_allclose(X[0], [0.3, 0.7], atol=1e-2)
        assert float(values[0]) == pytest.approx(0.0, abs=1e-3)

    def test_gradient_returns_q_sorted_points(self):
        bounds = jnp.array([[0.0, 1.0], [0.0, 1.0]])
        X, values = optimize_acqf(bump, bounds, q=3, num_restarts=5, key=jr.PRNGKey(1))
        assert X.shape == (3, 2)
        assert values[0] >= values[1] >= values[2]

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown method"):
            optimize_acqf(bump, jnp.array([[0.0, 1.0]]), method="lbfgs")


# ============================================================================
# AcquisitionOptimizer
# ============================================================================


class TestAcquisitionOptimizer:
    def test_finds_maximum(self, unit_square):
        candidate = AcquisitionOptimizer(steps=200).maximize(bump, unit_square, jr.PRNGKey(0))
        assert isinstance(candidate, Candidate)
        np.testing.assert_allclose(candidate.x, [0.3, 0.7], atol=1e-2)

    def test_respects_bounds(self):
        domain = SearchDomain(lower=[0.5, 0.0], upper=[1.0, 0.2])
        candidate = AcquisitionOptimizer().maximize(bump, domain, jr.PRNGKey(0))
        assert domain.contains(candidate.x)
        np.testing.assert_allclose(candidate.x, [0.5, 0.2], atol=1e-6)

    def test_deterministic_for_fixed_key(self, snapshot_1d):
        acq = ExpectedImprovement(snapshot_1d, best_f=snapshot_1d.best_observed())
        optimizer = AcquisitionOptimizer(n_restarts=4, steps=30)
        a = optimizer.maximize(acq, SearchDomain.unit(1), jr.PRNGKey(5))
        b = optimizer.maximize(acq, SearchDomain.unit(1), jr.PRNGKey(5))
        np.testing.assert_array_equal(a.x, b.x)
        assert a.acquisition_value == b.acquisition_value

    def test_expected_improvement_near_grid_maximum(self, snapshot_1d):
        acq = ExpectedImprovement(snapshot_1d, best_f=snapshot_1d.best_observed())
        grid = jnp.linspace(0.0, 1.0, 401)[:, None]
        grid_max = float(jnp.max(acq(grid)))
        candidate = AcquisitionOptimizer().maximize(acq, SearchDomain.unit(1), jr.PRNGKey(0))
        assert 0.0 <= candidate.x[0] <= 1.0
        assert candidate.acquisition_value >= 0.99 * grid_max

    def test_flat_surface_returns_random_point(self, unit_square):
        optimizer = AcquisitionOptimizer(steps=5)
        flat = lambda X: jnp.zeros(X.shape[0])  # noqa: E731
        a = optimizer.maximize(flat, unit_square, jr.PRNGKey(0))
        b = optimizer.maximize(flat, unit_square, jr.PRNGKey(1))
        assert unit_square.contains(a.x) and unit_square.contains(b.x)
        assert a.acquisition_value == 0.0
        assert not np.allclose(a.x, b.x)

    @pytest.mark.parametrize("factor", [1e-13, 1e-20])
    def test_tiny_scale_surface_is_optimised(self, factor):
        def peaked(X):
            return factor * (1.0 - jnp.sum(jnp.square(X - 0.3), axis=-1))

        domain = SearchDomain.unit(1)
        optimizer = AcquisitionOptimizer(steps=200)
        candidate = optimizer.maximize(peaked, domain, jr.PRNGKey(0))
        np.testing.assert_allclose(candidate.x, [0.3], atol=1e-2)
        assert candidate.acquisition_value > 0.0

    def test_rescaled_surface_gives_same_candidate(self, unit_square):
        optimizer = AcquisitionOptimizer(steps=50)
        a = optimizer.maximize(bump, unit_square, jr.PRNGKey(2))
        b = optimizer.maximize(lambda X: 1e-13 * bump(X), unit_square, jr.PRNGKey(2))
        np.testing.assert_allclose(a.x, b.x, atol=1e-6)
        assert b.acquisition_value == pytest.approx(1e-13 * a.acquisition_value)

    def test_non_finite_surface_returns_random_point(self, unit_square):
        broken = lambda X: jnp.full(X.shape[0], jnp.nan)  # noqa: E731
        candidate = AcquisitionOptimizer(steps=5).maximize(broken, unit_square, jr.PRNGKey(0))
        assert unit_square.contains(candidate.x)
        assert candidate.acquisition_value == 0.0

    def test_degenerate_domain(self):
        domain = SearchDomain(lower=[0.25, 1.0], upper=[0.25, 1.0])
        candidate = AcquisitionOptimizer().maximize(bump, domain, jr.PRNGKey(0))
        np.testing.assert_array_equal(candidate.x, [0.25, 1.0])

    def test_tracks_history(self, unit_square):
        optimizer = AcquisitionOptimizer(steps=15, track_history=True, log_every=5)
        optimizer.maximize(bump, unit_square, jr.PRNGKey(0))
        steps, values = optimizer.get_history()
        assert steps == [0, 5, 10, 14]
        assert len(values) == 4

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            AcquisitionOptimizer(n_restarts=0)
        with pytest.raises(ValueError):
            AcquisitionOptimizer(raw_samples=0)
