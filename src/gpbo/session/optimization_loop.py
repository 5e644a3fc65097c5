"""
optimization_loop.py
--------------------

OptimizationLoop orchestrates sequential model-based optimisation.

Responsibilities
----------------
1. Own the History: the only place where evaluations are appended.
2. Seed the History from caller-supplied points or an initial design.
3. Each iteration: fit the surrogate, maximise the acquisition, evaluate
   the objective exactly once, append.
4. Stop on the iteration budget, an optional convergence criterion, a stop
   signal, or an objective failure, always returning the History so far.

State machine
-------------
    INIT --initialize()--> ITERATING --step()...--> DONE

Coordinates and sign
--------------------
The surrogate sees inputs mapped to the unit cube and outcomes multiplied
by ``sign`` (+1 when maximising, -1 when minimising), so acquisition
functions always maximise. Candidates are mapped back and clamped to the
domain before evaluation.

Cancellation
------------
When an ``evaluation_timeout`` or a ``stop_event`` is in play, the
objective runs in a worker thread that is polled until it finishes. A
timed-out or cancelled evaluation is abandoned and its result, if it ever
arrives, is not appended. Python cannot interrupt a running thread, so the
objective itself keeps running in the background until it returns.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent import futures
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import jax.random as jr
import numpy as np

from gpbo.acquisition import AcquisitionOptimizer, make_acquisition
from gpbo.config import OptimizerConfig
from gpbo.data import Candidate, History, ObservedPoint, SearchDomain
from gpbo.exceptions import (
    EvaluationCancelledError,
    EvaluationTimeoutError,
    ObjectiveEvaluationError,
)
from gpbo.initial_design import InitialDesign
from gpbo.model import Surrogate
from gpbo.posterior import GaussianProcessPosterior
from gpbo.utils.objective import call_objective, check_outcome
from gpbo.utils.rng import seed as make_key

logger = logging.getLogger(__name__)

# Seconds between checks of the stop event while the objective runs
_POLL_INTERVAL = 0.05


class LoopState(Enum):
    INIT = "init"
    ITERATING = "iterating"
    DONE = "done"


@dataclass
class OptimizationResult:
    """
    Outcome of a run.

    Attributes
    ----------
    best : ObservedPoint | None
        Best evaluation in ``history`` (None if nothing was evaluated).
    history : History
        Every evaluation, in order, including those made before a failure.
    status : {"completed", "converged", "cancelled", "failed"}
        Why the run stopped.
    n_iterations : int
        Iterations completed after the initial design.
    error : Exception | None
        The error that stopped a failed or cancelled run.
    """

    best: ObservedPoint | None
    history: History
    status: str
    n_iterations: int
    error: Exception | None = None

    @property
    def x_best(self) -> np.ndarray | None:
        return None if self.best is None else self.best.x

    @property
    def y_best(self) -> float | None:
        return None if self.best is None else self.best.y

    @property
    def success(self) -> bool:
        return self.status in ("completed", "converged")


class OptimizationLoop:
    """
    Sequential model-based optimiser.

    Parameters
    ----------
    objective : callable
        ``objective(x) -> float`` for ``x`` of shape (d,). Possibly noisy and
        slow; must not depend on the optimiser's state.
    domain : SearchDomain | sequence of (low, high)
        Feasible box.
    config : OptimizerConfig | None
        Run options. Defaults to OptimizerConfig().
    surrogate : Surrogate | None
        Defaults to the GP described by ``config``.
    acquisition_optimizer : AcquisitionOptimizer | None
        Defaults to the optimiser described by ``config``.
    initial_design : InitialDesign | None
        Defaults to the design named in ``config``.

    Attributes
    ----------
    history : History
        All evaluations so far.
    state : LoopState
    n_iterations : int
        Completed iterations (initial design excluded).
    candidates : list of Candidate
        Proposals made by step(), in order.
    snapshot : GaussianProcessPosterior | None
        Surrogate snapshot of the latest iteration (unit-cube inputs, signed
        outcomes).

    Examples
    --------
    >>> loop = OptimizationLoop(lambda x: -(x[0] - 1.0) ** 2, [(-2.0, 2.0)],
    ...                         OptimizerConfig(n_iters=15, n_initial=3))
    >>> result = loop.run()
    >>> result.x_best, result.y_best
    """

    def __init__(
        self,
        objective: Callable[[np.ndarray], float],
        domain,
        config: OptimizerConfig | None = None,
        *,
        surrogate: Surrogate | None = None,
        acquisition_optimizer: AcquisitionOptimizer | None = None,
        initial_design: InitialDesign | None = None,
    ):
        if not callable(objective):
            raise TypeError(f"objective must be callable, got {type(objective)}")
        if not isinstance(domain, SearchDomain):
            domain = SearchDomain.from_bounds(domain)
        self.objective = objective
        self.domain = domain
        self.config = config or OptimizerConfig()
        self.surrogate = surrogate or self.config.build_surrogate(domain.dim)
        self.acquisition_optimizer = (
            acquisition_optimizer or self.config.build_acquisition_optimizer()
        )
        self.initial_design = initial_design or self.config.build_initial_design()

        # Fixed dimensions collapse to 0 in unit coordinates
        self.unit_domain = SearchDomain(
            lower=np.zeros(domain.dim), upper=(domain.width > 0).astype(float)
        )

        self.history = History()
        self.state = LoopState.INIT
        self.n_iterations = 0
        self.candidates: list[Candidate] = []
        self.snapshot: GaussianProcessPosterior | None = None
        self._key = make_key(self.config.random_seed)
        self._stop_event: threading.Event | None = None

    # ------------------------------------------------------------------
    # INIT
    # ------------------------------------------------------------------
    def initialize(self, initial_points=None) -> History:
        """
        Seed the History and enter ITERATING (or DONE).

        Parameters
        ----------
        initial_points : History | (X, y) | None
            Already-evaluated points. When None, the initial design proposes
            ``config.n_initial`` inputs and each is evaluated once. On a
            single-point domain that point is evaluated once instead.

        Returns
        -------
        History

        Raises
        ------
        RuntimeError
            If the loop was already initialised.
        ValueError
            If supplied points are empty, have the wrong dimension or lie
            outside the domain.
        ObjectiveEvaluationError
            If an initial evaluation fails. Points evaluated before the
            failure stay in the History.
        """
        if self.state is not LoopState.INIT:
            raise RuntimeError("initialize() can only be called once")

        if initial_points is not None:
            self.history.extend(self._validate_initial_points(initial_points))
        elif self.domain.is_degenerate:
            x = np.array(self.domain.lower, dtype=float)
            self.history.append(x, self._evaluate(x))
        else:
            X = self.initial_design.propose(self.domain, self.config.n_initial)
            for x in X:
                self.history.append(x, self._evaluate(x))

        logger.info(
            "initial design: %d points, best y=%.6g",
            len(self.history),
            self.history.best(self.config.maximize).y,
        )
        if self.domain.is_degenerate:
            # Nothing left to search
            self.state = LoopState.DONE
        elif self.config.n_iters == 0:
            self.state = LoopState.DONE
        else:
            self.state = LoopState.ITERATING
        return self.history

    def _validate_initial_points(self, initial_points) -> History:
        if isinstance(initial_points, History):
            points = initial_points
        else:
            X, y = initial_points
            X = np.asarray(X, dtype=float)
            if X.ndim == 1:
                X = X[:, None] if self.domain.dim == 1 else X[None, :]
            points = History.from_arrays(X, y)
        if len(points) == 0:
            raise ValueError("initial_points must contain at least one point")
        if points.dim != self.domain.dim:
            raise ValueError(
                f"initial points have dimension {points.dim}, domain has {self.domain.dim}"
            )
        for point in points:
            if not self.domain.contains(point.x, tol=1e-12):
                raise ValueError(f"initial point {point.x.tolist()} lies outside the domain")
        return points

    # ------------------------------------------------------------------
    # ITERATING
    # ------------------------------------------------------------------
    def step(self) -> Candidate:
        """
        Run one iteration and return the evaluated candidate.

        Fits the surrogate on the current History, maximises the acquisition,
        evaluates the objective once at the (clamped) candidate and appends
        the result.

        Raises
        ------
        RuntimeError
            If called before initialize() or after the loop is DONE.
        ObjectiveEvaluationError
            If the evaluation fails; the History is left unchanged.
        """
        if self.state is LoopState.INIT:
            raise RuntimeError("call initialize() before step()")
        if self.state is LoopState.DONE:
            raise RuntimeError("the loop is done")

        self._key, key_fit, key_acq, key_dup = jr.split(self._key, 4)
        sign = self.config.sign
        X, y = self.history.to_numpy()
        training = History.from_arrays(self.domain.to_unit(X), sign * y)

        self.snapshot = self.surrogate.fit(training, key=key_fit)
        best_f = float(np.max(sign * y))
        acquisition = make_acquisition(
            self.config.acquisition,
            self.snapshot,
            best_f,
            **self.config.acquisition_options,
        )
        proposal = self.acquisition_optimizer.maximize(acquisition, self.unit_domain, key_acq)

        u = self.unit_domain.clip(proposal.x)
        acquisition_value = proposal.acquisition_value
        if training.contains(u, tol=self.config.duplicate_tol):
            logger.warning(
                "candidate %s duplicates an evaluated input; proposing a random point",
                np.round(self.domain.from_unit(u), 6).tolist(),
            )
            u = self.unit_domain.sample_uniform(key_dup, 1)[0]
            acquisition_value = float(np.asarray(acquisition(u[None, :]))[0])

        x = self.domain.clip(self.domain.from_unit(u))
        y_new = self._evaluate(x)
        self.history.append(x, y_new)
        self.n_iterations += 1

        candidate = Candidate(x=x, acquisition_value=acquisition_value)
        self.candidates.append(candidate)
        logger.info(
            "iteration %d/%d: y=%.6g acq=%.3g best=%.6g",
            self.n_iterations,
            self.config.n_iters,
            y_new,
            acquisition_value,
            self.history.best(self.config.maximize).y,
        )
        if self.n_iterations >= self.config.n_iters:
            self.state = LoopState.DONE
        return candidate

    def _converged(self, candidate: Candidate) -> bool:
        threshold = self.config.convergence_threshold
        if threshold is not None and candidate.acquisition_value < threshold:
            logger.info(
                "acquisition value %.3g below threshold %.3g; stopping",
                candidate.acquisition_value,
                threshold,
            )
            return True

        threshold = self.config.improvement_threshold
        window = self.config.improvement_window
        if threshold is not None and self.n_iterations >= window:
            signed = self.config.sign * np.asarray(self.history.outcomes)
            improvement = float(np.max(signed) - np.max(signed[:-window]))
            if improvement < threshold:
                logger.info(
                    "best outcome improved by %.3g over the last %d iterations; stopping",
                    improvement,
                    window,
                )
                return True
        return False

    # ------------------------------------------------------------------
    # RUN
    # ------------------------------------------------------------------
    def run(
        self,
        initial_points=None,
        stop_event: threading.Event | None = None,
    ) -> OptimizationResult:
        """
        Initialise (if needed) and iterate until DONE.

        Parameters
        ----------
        initial_points : History | (X, y) | None
            Passed to initialize().
        stop_event : threading.Event | None
            When set, the loop stops before the next iteration, or abandons
            the evaluation in flight.

        Returns
        -------
        OptimizationResult
            Objective failures and cancellation do not raise: they end the
            run and are reported in ``status`` and ``error``.
        """
        if self.state is LoopState.DONE:
            raise RuntimeError("the loop is done")
        if self.state is LoopState.ITERATING and initial_points is not None:
            raise ValueError("initial_points given but the loop is already initialised")
        if self.state is LoopState.INIT and initial_points is not None:
            self.initialize(initial_points)

        self._stop_event = stop_event
        status, error = "completed", None
        try:
            if self.state is LoopState.INIT:
                self.initialize()
            while self.state is LoopState.ITERATING:
                if stop_event is not None and stop_event.is_set():
                    logger.info("stop requested; finishing after %d iterations", self.n_iterations)
                    status = "cancelled"
                    break
                candidate = self.step()
                if self._converged(candidate):
                    status = "converged"
                    break
        except EvaluationCancelledError as exc:
            logger.info("evaluation cancelled; its result is discarded")
            status, error = "cancelled", exc
        except ObjectiveEvaluationError as exc:
            logger.error("optimisation aborted after %d evaluations: %s", len(self.history), exc)
            status, error = "failed", exc
        except Exception as exc:
            logger.exception("optimisation aborted after %d evaluations", len(self.history))
            status, error = "failed", exc
        finally:
            self._stop_event = None
            self.state = LoopState.DONE

        best = self.history.best(self.config.maximize) if len(self.history) else None
        return OptimizationResult(
            best=best,
            history=self.history,
            status=status,
            n_iterations=self.n_iterations,
            error=error,
        )

    # ------------------------------------------------------------------
    # OBJECTIVE EVALUATION
    # ------------------------------------------------------------------
    def _evaluate(self, x: np.ndarray) -> float:
        """
        Evaluate the objective once at ``x``.

        Raises
        ------
        ObjectiveEvaluationError
            The objective raised, or returned a non-scalar or non-finite
            value.
        EvaluationTimeoutError
            The objective exceeded ``config.evaluation_timeout``.
        EvaluationCancelledError
            The stop event was set while the objective was running.
        """
        x = np.array(x, dtype=float)
        timeout = self.config.evaluation_timeout
        if timeout is None and self._stop_event is None:
            y = call_objective(self.objective, x)
        else:
            y = self._evaluate_in_worker(x, timeout, self._stop_event)
        return check_outcome(x, y)

    def _evaluate_in_worker(
        self,
        x: np.ndarray,
        timeout: float | None,
        stop_event: threading.Event | None,
    ):
        executor = futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="gpbo-objective")
        try:
            future = executor.submit(call_objective, self.objective, x)
            deadline = None if timeout is None else time.monotonic() + timeout
            while True:
                wait_for = _POLL_INTERVAL
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        future.cancel()
                        raise EvaluationTimeoutError(
                            f"objective did not return within {timeout} s", x=x
                        )
                    wait_for = min(wait_for, remaining)
                done, _ = futures.wait([future], timeout=wait_for)
                if done:
                    return future.result()
                if stop_event is not None and stop_event.is_set():
                    future.cancel()
                    raise EvaluationCancelledError(
                        f"stop requested while evaluating x={x.tolist()}"
                    )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


# ----------------------------------------------------------------------
# Convenience entry points
# ----------------------------------------------------------------------
def maximize(
    objective: Callable[[np.ndarray], float],
    bounds,
    *,
    initial_points=None,
    stop_event: threading.Event | None = None,
    **options,
) -> OptimizationResult:
    """
    Maximise ``objective`` over the box ``bounds``.

    Parameters
    ----------
    objective : callable
    bounds : sequence of (low, high) | SearchDomain
    initial_points : History | (X, y) | None
    stop_event : threading.Event | None
    **options
        OptimizerConfig fields (``maximize`` excluded).

    Examples
    --------
    >>> result = maximize(lambda x: -(x[0] - 1.0) ** 2, [(-2.0, 2.0)], n_iters=15)
    """
    return _optimize(objective, bounds, True, initial_points, stop_event, options)


def minimize(
    objective: Callable[[np.ndarray], float],
    bounds,
    *,
    initial_points=None,
    stop_event: threading.Event | None = None,
    **options,
) -> OptimizationResult:
    """Minimise ``objective`` over the box ``bounds``; see maximize()."""
    return _optimize(objective, bounds, False, initial_points, stop_event, options)


def _optimize(objective, bounds, maximize_, initial_points, stop_event, options):
    if "maximize" in options:
        raise ValueError("'maximize' is implied by the function; do not pass it")
    config = OptimizerConfig.from_dict({**options, "maximize": maximize_})
    loop = OptimizationLoop(objective, bounds, config)
    return loop.run(initial_points=initial_points, stop_event=stop_event)
