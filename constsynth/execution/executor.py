"""
constsynth Symbolic Executor - IR to Z3

Evaluates a Program into its State:
1. Inputs: plain inputs become universally quantified leaves; holes become
   tag-guarded choices between a concrete value, undef and poison.
2. Instructions: evaluated in program order with LLVM-style poison and UB rules.
3. Preconditions: conjoined into the state's precondition.
4. Return value: stored together with the undef variables it depends on.
"""

from __future__ import annotations

from typing import Callable, Dict, List

import z3

from ..engines.z3_engine.exprs import StateValue
from ..language.ir import (
    Assume, BinOp, BinOpFlag, BinOpKind, ConstantInput, ExtractValue, ICmp,
    ICmpCond, Input, IntConst, MakeAggregate, PoisonValue, Select, TAG_POISON,
    TAG_UNDEF, UndefValue, Value,
)
from ..language.types import IntType, Type, Val, leaves, scalar, zip_leaves
from .state import State


# ============================================================================
# PART 1: OPERATOR TABLES
# ============================================================================

def _op_add(x, y): return x + y
def _op_sub(x, y): return x - y
def _op_mul(x, y): return x * y
def _op_udiv(x, y): return z3.UDiv(x, y)
def _op_sdiv(x, y): return x / y
def _op_urem(x, y): return z3.URem(x, y)
def _op_srem(x, y): return z3.SRem(x, y)
def _op_shl(x, y): return x << y
def _op_lshr(x, y): return z3.LShR(x, y)
def _op_ashr(x, y): return x >> y
def _op_and(x, y): return x & y
def _op_or(x, y): return x | y
def _op_xor(x, y): return x ^ y


_BINOPS: Dict[BinOpKind, Callable] = {
    BinOpKind.ADD: _op_add,
    BinOpKind.SUB: _op_sub,
    BinOpKind.MUL: _op_mul,
    BinOpKind.UDIV: _op_udiv,
    BinOpKind.SDIV: _op_sdiv,
    BinOpKind.UREM: _op_urem,
    BinOpKind.SREM: _op_srem,
    BinOpKind.SHL: _op_shl,
    BinOpKind.LSHR: _op_lshr,
    BinOpKind.ASHR: _op_ashr,
    BinOpKind.AND: _op_and,
    BinOpKind.OR: _op_or,
    BinOpKind.XOR: _op_xor,
}

_CMPS: Dict[ICmpCond, Callable] = {
    ICmpCond.EQ: lambda x, y: x == y,
    ICmpCond.NE: lambda x, y: x != y,
    ICmpCond.UGT: z3.UGT,
    ICmpCond.UGE: z3.UGE,
    ICmpCond.ULT: z3.ULT,
    ICmpCond.ULE: z3.ULE,
    ICmpCond.SGT: lambda x, y: x > y,
    ICmpCond.SGE: lambda x, y: x >= y,
    ICmpCond.SLT: lambda x, y: x < y,
    ICmpCond.SLE: lambda x, y: x <= y,
}

_DIVISIONS = (BinOpKind.UDIV, BinOpKind.SDIV, BinOpKind.UREM, BinOpKind.SREM)
_SHIFTS = (BinOpKind.SHL, BinOpKind.LSHR, BinOpKind.ASHR)


def _overflow_checks(op: BinOpKind, flags, x, y, value) -> List[z3.BoolRef]:
    """Poison conditions contributed by nsw / nuw / exact."""
    out: List[z3.BoolRef] = []
    nsw = BinOpFlag.NSW in flags
    nuw = BinOpFlag.NUW in flags
    exact = BinOpFlag.EXACT in flags

    if op == BinOpKind.ADD:
        if nsw:
            out += [z3.BVAddNoOverflow(x, y, True), z3.BVAddNoUnderflow(x, y)]
        if nuw:
            out.append(z3.BVAddNoOverflow(x, y, False))
    elif op == BinOpKind.SUB:
        if nsw:
            out += [z3.BVSubNoOverflow(x, y), z3.BVSubNoUnderflow(x, y, True)]
        if nuw:
            out.append(z3.BVSubNoUnderflow(x, y, False))
    elif op == BinOpKind.MUL:
        if nsw:
            out += [z3.BVMulNoOverflow(x, y, True), z3.BVMulNoUnderflow(x, y)]
        if nuw:
            out.append(z3.BVMulNoOverflow(x, y, False))
    elif op == BinOpKind.SHL:
        if nuw:
            out.append(z3.LShR(value, y) == x)
        if nsw:
            out.append((value >> y) == x)
    elif op in (BinOpKind.LSHR, BinOpKind.ASHR):
        if exact:
            out.append((value << y) == x)
    elif op == BinOpKind.UDIV:
        if exact:
            out.append(z3.URem(x, y) == 0)
    elif op == BinOpKind.SDIV:
        if exact:
            out.append(z3.SRem(x, y) == 0)
    return out


# ============================================================================
# PART 2: THE EXECUTOR
# ============================================================================

class Executor:
    """Evaluates the values of one program into its State (memoized per value)."""

    def __init__(self, state: State):
        self.state = state

    def run(self) -> State:
        program = self.state.program
        for v in program.inputs:
            self.eval(v, record=True)
        for instr in program.instrs:
            self.eval(instr, record=True)
        for pre in program.preconditions:
            c = self.eval(pre)
            self.state.add_pre(z3.And(c.non_poison, c.value == 1))
        self.state.set_return(self.eval(program.ret))
        return self.state

    def eval(self, v: Value, record: bool = False) -> Val:
        val = self.state.cached(v)
        if val is None:
            val = self.state.remember(v, self._eval(v))
        if record and not v.type.is_void():
            self.state.record(v, val)
        return val

    # -----------------------------
    # Value kinds
    # -----------------------------
    def _eval(self, v: Value) -> Val:
        if isinstance(v, Input):
            val = v.type.mk_var(v.name)
            for leaf in leaves(v.type, val):
                self.state.add_input_var(leaf.value)
            return val

        if isinstance(v, ConstantInput):
            return self._constant_input(v)

        if isinstance(v, IntConst):
            return self._splat(v.type, lambda t: StateValue(t.const(v.value), z3.BoolVal(True)))

        if isinstance(v, UndefValue):
            val, uvars = v.type.mk_undef(self.state.fresh_name("undef_"))
            for u in uvars:
                self.state.add_quant_var(u)
            return val

        if isinstance(v, PoisonValue):
            return v.type.mk_poison()

        if isinstance(v, BinOp):
            a, b = self.eval(v.a), self.eval(v.b)
            ty = scalar(v.type)
            return zip_leaves(v.type, lambda x, y: self._binop(v, ty, x, y), a, b)

        if isinstance(v, ICmp):
            a, b = self.eval(v.a), self.eval(v.b)
            cond = _CMPS[v.cond](a.value, b.value)
            return StateValue(
                z3.If(cond, z3.BitVecVal(1, 1), z3.BitVecVal(0, 1)),
                z3.And(a.non_poison, b.non_poison),
            )

        if isinstance(v, Select):
            c = self.eval(v.cond)
            taken = c.value == 1

            def pick(x: StateValue, y: StateValue) -> StateValue:
                return StateValue(
                    z3.If(taken, x.value, y.value),
                    z3.And(c.non_poison, z3.If(taken, x.non_poison, y.non_poison)),
                )

            return zip_leaves(v.type, pick, self.eval(v.a), self.eval(v.b))

        if isinstance(v, ExtractValue):
            return v.agg.type.extract(self.eval(v.agg), v.index)

        if isinstance(v, MakeAggregate):
            return tuple(self.eval(e) for e in v.elements)

        if isinstance(v, Assume):
            c = self.eval(v.cond)
            self.state.add_ub(z3.And(c.non_poison, c.value == 1))
            return ()

        raise TypeError(f"Cannot execute value of type {v.__class__.__name__}: {v}")

    def _constant_input(self, v: ConstantInput) -> Val:
        plain = v.type.mk_var(v.name)
        if not v.is_hole:
            return plain

        cfg = self.state.config
        tag = v.ty_var
        non_poison = z3.BoolVal(True) if cfg.disable_poison_input else tag != TAG_POISON

        if cfg.disable_undef_input:
            return zip_leaves(v.type, lambda p: StateValue(p.value, non_poison), plain)

        undef, uvars = v.type.mk_undef(self.state.fresh_name(f"undef_{v.name}_"))
        for u in uvars:
            self.state.add_quant_var(u)

        def choose(p: StateValue, u: StateValue) -> StateValue:
            return StateValue(z3.If(tag == TAG_UNDEF, u.value, p.value), non_poison)

        return zip_leaves(v.type, choose, plain, undef)

    def _binop(self, instr: BinOp, ty: IntType, a: StateValue, b: StateValue) -> StateValue:
        x, y = a.value, b.value
        op = instr.op

        if op in _DIVISIONS:
            self.state.add_ub(z3.And(b.non_poison, y != 0))
            if op in (BinOpKind.SDIV, BinOpKind.SREM):
                int_min = ty.const(1 << (ty.bits - 1))
                self.state.add_ub(z3.Not(z3.And(x == int_min, y == ty.const(-1))))

        value = _BINOPS[op](x, y)
        non_poison = [a.non_poison, b.non_poison]
        if op in _SHIFTS:
            non_poison.append(z3.ULT(y, ty.const(ty.bits)))
        non_poison += _overflow_checks(op, instr.flags, x, y, value)
        return StateValue(value, z3.And(*non_poison))

    def _splat(self, ty: Type, fn: Callable[[IntType], StateValue]) -> Val:
        if not ty.is_aggregate():
            return fn(ty)
        return tuple(self._splat(child, fn) for child in ty.children())


def sym_exec(state: State) -> State:
    """Symbolically execute state.program into state."""
    return Executor(state).run()
