"""
constsynth - Symbolic State

The result of symbolically executing one program: domain, precondition,
quantified variables, the return value, and an ordered record of every input
and instruction value encountered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import z3

from ..engines.z3_engine.exprs import AndExpr, expr_vars, is_undef_var, unique
from ..language.ir import Program, Value
from ..language.types import Val, leaves
from ..runtime import ExecutionContext, SynthConfig


@dataclass(frozen=True)
class ValueEntry:
    """One (variable, value) record; the value carries its poison flags."""
    var: Value
    value: Val


ReturnVal = Tuple[Val, List[z3.ExprRef]]


class State:
    """
    Symbolic state of one program.

    Usage:
        st = State(program, is_source=True, ctx=ctx)
        sym_exec(st)
        st.domain(), st.pre(), st.return_val
    """

    def __init__(
        self,
        program: Program,
        is_source: bool,
        ctx: ExecutionContext,
        config: Optional[SynthConfig] = None,
    ):
        self.program = program
        self.is_source = is_source
        self.ctx = ctx
        self.config = config or SynthConfig()

        self.domain = AndExpr()
        self.pre = AndExpr()
        self._forall: List[z3.ExprRef] = []
        self._input_vars: List[z3.ExprRef] = []
        self._entries: List[ValueEntry] = []
        self._cache: Dict[int, Val] = {}
        self.return_val: Optional[ReturnVal] = None

    # -----------------------------
    # Recording (used by the executor)
    # -----------------------------
    def add_ub(self, cond: z3.BoolRef) -> None:
        """Execution is only defined when cond holds."""
        self.domain.add(cond)

    def add_pre(self, cond: z3.BoolRef) -> None:
        self.pre.add(cond)

    def add_quant_var(self, var: z3.ExprRef) -> None:
        self._forall.append(var)

    def add_input_var(self, var: z3.ExprRef) -> None:
        self._input_vars.append(var)

    def fresh_name(self, prefix: str) -> str:
        return f"{prefix}{self.ctx.fresh_id()}"

    def record(self, var: Value, value: Val) -> None:
        self._entries.append(ValueEntry(var, value))

    def cached(self, var: Value) -> Optional[Val]:
        return self._cache.get(id(var))

    def remember(self, var: Value, value: Val) -> Val:
        self._cache[id(var)] = value
        return value

    def set_return(self, value: Val) -> None:
        undef_vars: List[z3.ExprRef] = []
        for leaf in leaves(self.program.type, value):
            undef_vars.extend(v for v in expr_vars(leaf.value) if is_undef_var(v))
            undef_vars.extend(v for v in expr_vars(leaf.non_poison) if is_undef_var(v))
        self.return_val = (value, unique(undef_vars))

    # -----------------------------
    # Queries
    # -----------------------------
    def __getitem__(self, var: Value) -> Val:
        v = self.cached(var)
        if v is None:
            raise KeyError(f"Value '{var.name}' has not been executed in {self.program.name}")
        return v

    def get_values(self) -> List[ValueEntry]:
        return list(self._entries)

    def get_foralls(self) -> List[z3.ExprRef]:
        return unique(self._forall)

    def get_input_vars(self) -> List[z3.ExprRef]:
        return unique(self._input_vars)

    def return_domain(self) -> AndExpr:
        return self.domain

    def __repr__(self) -> str:
        side = "source" if self.is_source else "target"
        return f"State({self.program.name}, {side}, values={len(self._entries)})"
