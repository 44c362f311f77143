"""Local analysis: decision policy, checkers and the checker pipeline."""

from .decision import DecisionPolicy
from .dictionary import InMemoryPersonalDictionary, PersonalDictionary
from .pipeline import LocalAnalysisPipeline, reconcile_offsets

__all__ = [
    "DecisionPolicy",
    "InMemoryPersonalDictionary",
    "LocalAnalysisPipeline",
    "PersonalDictionary",
    "reconcile_offsets",
]
