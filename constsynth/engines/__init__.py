from .z3_engine.solver import Solver
from .z3_engine.suggestion import SuggestionEngine

__all__ = [
    "Solver",
    "SuggestionEngine",
]
