"""
session
=======

Optimisation orchestration.

This subpackage provides:
- OptimizationLoop : controller that owns the History and runs the
  fit / propose / evaluate cycle.
- OptimizationResult : best point, full History and stop reason of a run.
- LoopState : INIT, ITERATING, DONE.
- maximize / minimize : one-call entry points.
"""

from .optimization_loop import (
    LoopState,
    OptimizationLoop,
    OptimizationResult,
    maximize,
    minimize,
)

__all__ = ["LoopState", "OptimizationLoop", "OptimizationResult", "maximize", "minimize"]
