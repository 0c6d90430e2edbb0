"""
constsynth - Constant Synthesizer

Checks a Transform whose target contains holes and, when some assignment to
the holes makes the target refine the source for every input, extracts it.

Two queries are submitted, in order:
1) Domain soundness: can the source be defined where the target is not,
   whatever the holes are? A model is a definite counterexample.
2) Refinement: is there a hole assignment under which the target refines the
   source everywhere? A model yields the Hole Assignment Map.

Design principles:
- No outcome is fatal: every verdict is recorded or logged, the caller decides.
- Definite entries carry a rendered example; tooling entries carry a short tag.
- Hole values are only published from a refinement model.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import z3

from ..engines.z3_engine.solver import (
    Invalid, Result, Sat, Skip, Solver, SolverError, Timeout, Unsat,
)
from ..execution.executor import sym_exec
from ..execution.state import State
from ..language.ir import HOLE_PREFIX, Transform, Value, ValueKind
from ..language.types import leaves
from ..language.validator import TransformValidator
from ..runtime import ExecutionContext, SynthConfig
from .counterexample import CounterexampleRenderer
from .errors import Errors
from .query import QueryBuilder

logger = logging.getLogger(__name__)

HoleAssignment = Dict[Value, Any]

DOMAIN_MSG = "Source is more defined than target"


class ConstantSynth:
    """
    Usage:
        synth = ConstantSynth(transform)
        result = {}
        errors = synth.synthesize(result)
        if not errors:
            print(result)   # {hole: z3 value}
    """

    def __init__(
        self,
        transform: Transform,
        check_each_var: bool = False,
        *,
        config: Optional[SynthConfig] = None,
        ctx: Optional[ExecutionContext] = None,
        solver: Optional[Solver] = None,
    ):
        TransformValidator().validate(transform)

        self.transform = transform
        self.check_each_var = check_each_var
        self.config = config or SynthConfig()
        self.ctx = ctx or ExecutionContext.from_config(self.config)
        self.solver = solver or Solver(self.config, self.ctx)
        self.renderer = CounterexampleRenderer(self.solver.check_one)

        self.debug: bool = self.config.debug
        self._trace: List[Dict[str, Any]] = []
        self._trace_max: int = 400

    @property
    def trace(self) -> List[Dict[str, Any]]:
        return list(self._trace)

    def synthesize(self, result: HoleAssignment) -> Errors:
        """
        Run both queries and fill `result` with hole values on success.

        Returns the Error Report; `result` is left untouched unless the
        refinement query produced a model.
        """
        self._trace = []
        self._t("synthesize_start", transform=self.transform.name)

        self.ctx.fresh_numbering()
        src_state = sym_exec(State(self.transform.src, True, self.ctx, self.config))
        tgt_state = sym_exec(State(self.transform.tgt, False, self.ctx, self.config))
        self._t("sym_exec_done", src_values=len(src_state.get_values()), tgt_values=len(tgt_state.get_values()))

        qb = QueryBuilder(self.transform, src_state, tgt_state, self.config, self.ctx, trace=self._t)
        if self.debug:
            self._dump(qb)

        errors = Errors()

        def on_domain(res: Result) -> None:
            self._t("verdict", query="domain", result=res.__class__.__name__)
            if isinstance(res, Sat):
                errors.add(
                    self.renderer.describe(
                        res.model, src_state, tgt_state, DOMAIN_MSG, self.check_each_var,
                        free_holes=qb.holes,
                    ),
                    True,
                )
            elif not isinstance(res, Unsat):
                self._tooling(errors, res)

        def on_refinement(res: Result) -> None:
            self._t("verdict", query="refinement", result=res.__class__.__name__)
            if isinstance(res, Sat):
                self._extract(res, tgt_state, result)
            elif isinstance(res, Unsat):
                logger.warning("No constants found for %s: target cannot refine source", self.transform.name)
            else:
                self._tooling(errors, res)

        self.solver.check([
            (qb.domain_shrink_formula(), on_domain),
            (qb.refinement_formula(), on_refinement),
        ])

        self._t("synthesize_done", errors=len(errors), holes=len(result))
        return errors

    # -----------------------------
    # Verdicts
    # -----------------------------
    def _tooling(self, errors: Errors, res: Result) -> None:
        if isinstance(res, Invalid):
            errors.add("Invalid expr", False)
        elif isinstance(res, Timeout):
            errors.add("Timeout", False)
        elif isinstance(res, SolverError):
            errors.add(f"SMT Error: {res.reason}", False)
        elif isinstance(res, Skip):
            errors.add("Skip", False)
        else:
            raise TypeError(f"Unexpected solver verdict: {res!r}")

    def _extract(self, res: Sat, tgt_state: State, result: HoleAssignment) -> None:
        m = res.model
        for entry in tgt_state.get_values():
            var = entry.var
            if var.kind not in (ValueKind.INPUT, ValueKind.CONSTANT_INPUT):
                continue
            if not var.name.startswith(HOLE_PREFIX):
                continue

            if var.type.is_aggregate():
                value = tuple(m.eval(leaf.value, complete=True) for leaf in leaves(var.type, entry.value))
            else:
                value = m.eval(entry.value.value, complete=True)
            result[var] = value
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(";result %s = %s", var.name, self.renderer.print_varval(m, var, var.type, entry.value))
            self._t("hole", name=var.name, value=str(value))

    # -----------------------------
    # Debug
    # -----------------------------
    def _dump(self, qb: QueryBuilder) -> None:
        for st in (qb.src_state, qb.tgt_state):
            side = "SV" if st.is_source else "TV"
            for entry in st.get_values():
                logger.debug("%s %s = %s", side, entry.var, entry.value)

        poison_cnstr, value_cnstr = qb.refines()
        logger.debug("Value constraints: %s", z3.simplify(value_cnstr))
        logger.debug("Poison constraints: %s", z3.simplify(poison_cnstr))

    def _t(self, event: str, **data):
        if not self.debug:
            return
        rec = {"event": event, **data}
        self._trace.append(rec)
        if len(self._trace) > self._trace_max:
            self._trace.pop(0)

