"""
constsynth - Solver (Z3 Engine)

Submits prepared formulas to Z3 and classifies every outcome into a closed set
of verdicts:

    Unsat | Sat(model) | Invalid | Timeout | SolverError(reason) | Skip

Each submitted query produces exactly one verdict, delivered to its callback in
submission order. Z3 exceptions never escape: they become SolverError verdicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import z3

from ...runtime import ExecutionContext, SynthConfig

logger = logging.getLogger(__name__)


class Model:
    """Immutable variable assignment returned with a Sat verdict."""

    def __init__(self, model: z3.ModelRef):
        self._model = model

    def eval(self, e: z3.ExprRef, complete: bool = False) -> z3.ExprRef:
        """Evaluate e. Partial evaluation leaves unassigned variables symbolic."""
        return self._model.eval(e, model_completion=complete)

    def __getitem__(self, var: z3.ExprRef) -> z3.ExprRef:
        return self.eval(var, complete=True)

    def uint(self, var: z3.ExprRef) -> Optional[int]:
        v = self.eval(var, complete=True)
        if z3.is_bv_value(v) or z3.is_int_value(v):
            return v.as_long()
        return None

    def __repr__(self) -> str:
        return f"Model({self._model})"


class Result:
    """Base of the solver verdict sum type."""


@dataclass(frozen=True)
class Unsat(Result):
    pass


@dataclass(frozen=True)
class Sat(Result):
    model: Model


@dataclass(frozen=True)
class Invalid(Result):
    pass


@dataclass(frozen=True)
class Timeout(Result):
    pass


@dataclass(frozen=True)
class SolverError(Result):
    reason: str


@dataclass(frozen=True)
class Skip(Result):
    pass


Callback = Callable[[Result], None]
Query = Tuple[Optional[z3.BoolRef], Callback]

_TIMEOUT_REASONS = ("timeout", "canceled", "cancelled")


class Solver:
    """
    Thin Z3 front-end.

    Usage:
        solver = Solver(SynthConfig(smt_timeout_ms=5000))
        solver.check([(formula, on_result)])
    """

    def __init__(self, config: Optional[SynthConfig] = None, ctx: Optional[ExecutionContext] = None):
        self.config = config or SynthConfig()
        self.ctx = ctx

    def check(self, queries: Sequence[Query]) -> None:
        for formula, callback in queries:
            callback(self.check_one(formula))

    def check_one(self, formula: Optional[z3.BoolRef]) -> Result:
        if formula is None or not z3.is_bool(formula):
            return Invalid()

        if self.config.skip_smt or (self.ctx is not None and self.ctx.memory_exhausted()):
            return Skip()

        solver = z3.Solver()
        solver.set("timeout", int(self.config.smt_timeout_ms))
        try:
            solver.add(formula)
            res = solver.check()
        except z3.Z3Exception as e:
            logger.warning("Z3 raised while checking query: %s", e)
            return SolverError(str(e))

        if res == z3.unsat:
            return Unsat()
        if res == z3.sat:
            return Sat(Model(solver.model()))

        reason = solver.reason_unknown()
        if any(r in reason.lower() for r in _TIMEOUT_REASONS):
            return Timeout()
        return SolverError(reason)


def check_expr(formula: Optional[z3.BoolRef], config: Optional[SynthConfig] = None) -> Result:
    """One-shot check with a default solver."""
    return Solver(config).check_one(formula)


def describe(result: Result) -> str:
    if isinstance(result, Unsat):
        return "unsat"
    if isinstance(result, Sat):
        return "sat"
    if isinstance(result, Invalid):
        return "invalid"
    if isinstance(result, Timeout):
        return "timeout"
    if isinstance(result, SolverError):
        return f"error({result.reason})"
    if isinstance(result, Skip):
        return "skip"
    raise TypeError(f"Unknown solver verdict: {result!r}")


__all__: List[str] = [
    "Model", "Result", "Unsat", "Sat", "Invalid", "Timeout", "SolverError", "Skip",
    "Solver", "Query", "Callback", "check_expr", "describe",
]
