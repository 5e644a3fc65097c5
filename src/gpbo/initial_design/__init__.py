"""
initial_design
==============

Strategies for choosing the first inputs of a run.

Includes:
- InitialDesign: abstract base (propose(domain, n))
- SobolDesign: scrambled Sobol sequence (default)
- LatinHypercubeDesign: Latin-hypercube sampling
- UniformDesign: independent uniform draws
- evaluate_design: evaluate a design into a History
"""

from .base import InitialDesign, evaluate_design
from .latin_hypercube import LatinHypercubeDesign
from .sobol import SobolDesign
from .uniform import UniformDesign

# Registry for string-based design selection
INITIAL_DESIGNS = {
    "sobol": SobolDesign,
    "lhs": LatinHypercubeDesign,
    "uniform": UniformDesign,
}


def make_initial_design(name: str, seed: int = 0) -> InitialDesign:
    """Instantiate a registered initial design."""
    if name not in INITIAL_DESIGNS:
        available = ", ".join(INITIAL_DESIGNS.keys())
        raise ValueError(f"Unknown initial design: '{name}'. Available: {available}")
    return INITIAL_DESIGNS[name](seed=seed)


__all__ = [
    "InitialDesign",
    "SobolDesign",
    "LatinHypercubeDesign",
    "UniformDesign",
    "evaluate_design",
    "make_initial_design",
    "INITIAL_DESIGNS",
]
