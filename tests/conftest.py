"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Pytest hooks**: project-wide customizations of pytest behavior.

Notes
-----
- Contributors should install the package in editable mode
  (`pip install -e ".[test]"`) so that imports are resolved consistently in
  local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
"""

import jax

jax.config.update("jax_enable_x64", True)

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from gpbo.data import History, SearchDomain  # noqa: E402
from gpbo.model import GaussianProcessSurrogate, Matern52  # noqa: E402


@pytest.fixture
def history_1d():
    """Five noiseless evaluations of sin(6x) on [0, 1]."""
    X = np.array([[0.05], [0.3], [0.5], [0.7], [0.95]])
    y = np.sin(6.0 * X[:, 0])
    return History.from_arrays(X, y)


@pytest.fixture
def fixed_surrogate():
    """GP with fixed kernel parameters (no fitting) for exact checks."""
    return GaussianProcessSurrogate(
        Matern52(lengthscale=0.3),
        jitter=1e-6,
        normalize_y=False,
        optimize_kernel=False,
    )


@pytest.fixture
def snapshot_1d(fixed_surrogate, history_1d):
    """Posterior snapshot of the fixed GP on history_1d."""
    return fixed_surrogate.fit(history_1d)


@pytest.fixture
def quadratic():
    """f(x) = -(x - 1)^2, maximum 0 at x = 1."""

    def objective(x):
        return -float((x[0] - 1.0) ** 2)

    return objective


@pytest.fixture
def interval():
    """The search domain [-2, 2]."""
    return SearchDomain.from_bounds([(-2.0, 2.0)])
