"""
constsynth - Counterexample Reporter

Renders values under a solver model, recursing through aggregates:

    { 5, poison }      struct
    < 1, 2, undef >    vector

Leaves render as `poison`, `undef`, or the type's textual form of the
completed model value. Values that could only be printed by completing a
partial model with an undef variable are annotated `[based on undef value]`.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Set, Tuple

import z3

from ..engines.z3_engine.exprs import StateValue, expr_vars, is_undef_var, is_value, mk_forall
from ..engines.z3_engine.solver import Model, Result, Sat, Solver, Unsat
from ..execution.state import State
from ..language.ir import ConstantInput, TAG_BITS, TAG_CONCRETE, TAG_UNDEF, Value, ValueKind
from ..language.types import Type, Val, leaves, zip_leaves

logger = logging.getLogger(__name__)

CheckFn = Callable[[z3.BoolRef], Result]

BASED_ON_UNDEF = "\t[based on undef value]"
UNDEF_CHECK_INCONCLUSIVE = "\t[undef check inconclusive]"
ANY = "any"

Pin = List[Tuple[z3.ExprRef, z3.ExprRef]]


def _pin_holes(holes: Sequence[ConstantInput]) -> Pin:
    """Substitution fixing each hole to the concrete value 0."""
    pin: Pin = []
    for hole in holes:
        if hole.ty_var is not None:
            pin.append((hole.ty_var, z3.BitVecVal(TAG_CONCRETE, TAG_BITS)))
        for leaf in leaves(hole.type, hole.type.mk_var(hole.name)):
            pin.append((leaf.value, z3.BitVecVal(0, leaf.value.size())))
    return pin


def _substitute(sv: StateValue, pin: Pin) -> StateValue:
    if not sv.is_valid():
        return sv
    return StateValue(z3.substitute(sv.value, *pin), z3.substitute(sv.non_poison, *pin))


class CounterexampleRenderer:
    """
    Stateless renderer: the same (model, value, type) always yields the same text.

    Usage:
        r = CounterexampleRenderer(solver.check_one)
        r.print_varval(model, var, var.type, value)
    """

    def __init__(self, check: Optional[CheckFn] = None):
        self._check = check or Solver().check_one

    # -----------------------------
    # Values
    # -----------------------------
    def is_undef(self, e: z3.ExprRef) -> Optional[bool]:
        """
        True if e can take every value of its sort (forall vars(e). #undef != e
        is unsat), False if not, None if the check was inconclusive.
        """
        if is_value(e):
            return False
        marker = z3.Const("#undef", e.sort())
        res = self._check(mk_forall(expr_vars(e), marker != e))
        if isinstance(res, Unsat):
            return True
        if isinstance(res, Sat):
            return False
        logger.warning("Undef check for %s was inconclusive: %s", e, res)
        return None

    def print_single_varval(self, m: Model, var: Optional[Value], ty: Type, val: StateValue) -> str:
        if not val.is_valid():
            return "(invalid expr)"

        # a partial model leaves the flag open; counterexamples are usually
        # triggered by the worst case, which is poison
        np = m.eval(val.non_poison)
        if not is_value(np) or z3.is_false(np):
            return "poison"

        if var is not None and var.kind == ValueKind.CONSTANT_INPUT and var.is_hole:
            if m.uint(var.ty_var) == TAG_UNDEF:
                return "undef"

        partial = m.eval(val.value)
        undef = self.is_undef(partial)
        if undef:
            return "undef"

        out = ty.print_val(m.eval(val.value, complete=True))

        if undef is None:
            out += UNDEF_CHECK_INCONCLUSIVE
        elif not is_value(partial):
            # some variables lack an interpretation only because they are unused
            if any(is_undef_var(v) for v in expr_vars(partial)):
                out += BASED_ON_UNDEF
        return out

    def print_varval(self, m: Model, var: Optional[Value], ty: Type, val: Val) -> str:
        if not ty.is_aggregate():
            return self.print_single_varval(m, var, ty, val)

        open_, close = ("{ ", " }") if ty.is_struct() else ("< ", " >")
        parts = [
            self.print_varval(m, var, ty.get_child(i), ty.extract(val, i))
            for i in range(ty.num_elements())
        ]
        return open_ + ", ".join(parts) + close

    # -----------------------------
    # Narrative
    # -----------------------------
    def describe(
        self,
        m: Model,
        src_state: State,
        tgt_state: State,
        msg: str,
        check_each_var: bool = False,
        var: Optional[Value] = None,
        free_holes: Sequence[ConstantInput] = (),
    ) -> str:
        """
        Full counterexample text: message, inputs, then source and target values.

        free_holes are holes the model leaves unconstrained (the example holds
        for any value of them). They render as `any`, and values computed from
        them are shown with each such hole pinned to the concrete value 0.
        """
        var_name = var.name if var is not None else ""
        free = {h.name for h in free_holes}
        pin = _pin_holes(free_holes)

        def render(v: Value, val: Val) -> str:
            if v.name in free:
                return ANY
            if pin:
                val = zip_leaves(v.type, lambda sv: _substitute(sv, pin), val)
            return self.print_varval(m, v, v.type, val)

        lines: List[str] = [msg + (f" for {var}" if var_name else ""), "", "Example:"]

        for entry in src_state.get_values():
            if entry.var.kind not in (ValueKind.INPUT, ValueKind.CONSTANT_INPUT):
                continue
            lines.append(f"{entry.var} = {render(entry.var, entry.value)}")

        seen: Set[str] = set()
        for st in (src_state, tgt_state):
            if not check_each_var:
                lines.append("")
                lines.append("Source:" if st.is_source else "Target:")

            for entry in st.get_values():
                name = entry.var.name
                if var_name and name == var_name:
                    break
                if not name.startswith("%") or entry.var.kind == ValueKind.INPUT:
                    continue
                if check_each_var:
                    if name in seen:
                        continue
                    seen.add(name)
                lines.append(f"{entry.var} = {render(entry.var, entry.value)}")

        return "\n".join(lines) + "\n"
