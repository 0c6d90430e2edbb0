"""
constsynth - Query Builder

Turns the symbolic states of a source and a target program into the two
formulas that define correctness of a constant assignment:

- domain_shrink_formula(): satisfiable iff some input accepted by the source
  is rejected by the target whatever the holes are (domain-soundness bug).
- refinement_formula(): satisfiable iff some hole assignment makes the
  target refine the source for every input.

Both are preprocessed before being handed out; raw quantified formulas never
reach the solver.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import z3

from ..engines.z3_engine.exprs import not_implies, unique
from ..execution.state import State
from ..language.ir import Transform
from ..language.types import leaves
from ..runtime import ExecutionContext, SynthConfig
from .preprocess import Trace, no_trace, preprocess


class QueryBuilder:
    def __init__(
        self,
        transform: Transform,
        src_state: State,
        tgt_state: State,
        config: Optional[SynthConfig] = None,
        ctx: Optional[ExecutionContext] = None,
        trace: Trace = no_trace,
    ):
        self.transform = transform
        self.src_state = src_state
        self.tgt_state = tgt_state
        self.config = config or SynthConfig()
        self.ctx = ctx or ExecutionContext.from_config(self.config)
        self._trace = trace

        # optimization: rewrite "tgt /\ (src -> foo)" to "tgt /\ foo" if src = tgt
        pre_src_and = src_state.pre.copy()
        pre_src_and.subtract(tgt_state.pre)
        self.pre_src = pre_src_and()
        self.pre_tgt = tgt_state.pre()

        self.dom_src = src_state.return_domain()()
        self.dom_tgt = tgt_state.return_domain()()

        self.src_ret, src_undef = src_state.return_val
        self.tgt_ret, tgt_undef = tgt_state.return_val
        self.undef_qvars = unique(list(src_undef) + list(tgt_undef))
        self.holes = transform.holes()

    # -----------------------------
    # Variable classes
    # -----------------------------
    def forall_vars(self) -> List[z3.ExprRef]:
        return unique(self.src_state.get_foralls() + self.tgt_state.get_foralls())

    def input_vars(self) -> List[z3.ExprRef]:
        return unique(self.src_state.get_input_vars() + self.tgt_state.get_input_vars())

    def hole_vars(self) -> List[z3.ExprRef]:
        """Type-tags and value leaves of every hole."""
        out: List[z3.ExprRef] = []
        for hole in self.holes:
            out.append(hole.ty_var)
            out.extend(leaf.value for leaf in leaves(hole.type, hole.type.mk_var(hole.name)))
        return unique(out)

    # -----------------------------
    # Formulas
    # -----------------------------
    def refines(self) -> Tuple[z3.BoolRef, z3.BoolRef]:
        """(poison_constraint, value_constraint) of the source return type."""
        ty = self.transform.src.type
        return ty.refines(self.src_state, self.tgt_state, self.src_ret, self.tgt_ret)

    def domain_shrink_formula(self) -> z3.BoolRef:
        body = z3.And(self.pre_tgt, self.pre_src, not_implies(self.dom_src, self.dom_tgt))
        qvars = self.forall_vars() + self.hole_vars()
        self._trace("query_domain", qvars=len(qvars))
        return preprocess(
            body, qvars, self.undef_qvars, [], self.config,
            memory_pressure=self.ctx.memory_pressure,
            trace=self._trace,
        )

    def refinement_formula(self) -> z3.BoolRef:
        poison_cnstr, value_cnstr = self.refines()
        refines = z3.simplify(z3.And(self.dom_src, self.dom_tgt, value_cnstr, poison_cnstr))

        # we already know \exists v,v'. pre_tgt(v') /\ pre_src(v) is SAT (or timeout),
        # so with refines = false the quantified formula collapses to false
        if z3.is_false(refines):
            return refines

        fml = z3.And(self.pre_tgt, z3.Implies(self.pre_src, refines))
        qvars = self.forall_vars() + self.input_vars()
        self._trace("query_refinement", qvars=len(qvars), holes=len(self.holes))
        return preprocess(
            fml, qvars, self.undef_qvars, self.holes, self.config,
            memory_pressure=self.ctx.memory_pressure,
            trace=self._trace,
        )

