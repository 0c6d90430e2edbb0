from __future__ import annotations

from .state import State
from .executor import Executor, sym_exec

__all__ = [
    "State",
    "Executor",
    "sym_exec",
]
