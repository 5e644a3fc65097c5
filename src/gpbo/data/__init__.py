"""
gpbo.data
==========

submodule for handling optimisation data.

Includes:
- dataset: History, ObservedPoint, Candidate
- domain: SearchDomain
"""

from .dataset import Candidate, History, ObservedPoint
from .domain import SearchDomain

__all__ = ["Candidate", "History", "ObservedPoint", "SearchDomain"]
