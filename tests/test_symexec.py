from __future__ import annotations

import z3

from constsynth.engines.z3_engine.exprs import AndExpr, expr_vars, is_undef_var
from constsynth.execution.executor import sym_exec
from constsynth.execution.state import State
from constsynth.language.ir import (
    BinOp, BinOpFlag, BinOpKind, ConstantInput, ICmp, ICmpCond, Input, IntConst,
    MakeAggregate, ExtractValue, Program, Select, UndefValue,
)
from constsynth.language.types import StructType, VectorType, i1, i8
from constsynth.runtime import SynthConfig

X = z3.BitVec("%x", 8)
Y = z3.BitVec("%y", 8)


def _run(program, ctx, config=None, is_source=True):
    return sym_exec(State(program, is_source, ctx, config))


def _sat(*fmls) -> bool:
    s = z3.Solver()
    s.add(*fmls)
    return s.check() == z3.sat


def test_udiv_by_zero_shrinks_domain(ctx):
    x, y = Input("%x", i8), Input("%y", i8)
    d = BinOp("%d", BinOpKind.UDIV, x, y)
    st = _run(Program("p", [x, y], [d], d), ctx)

    assert not _sat(st.domain(), Y == 0)
    assert _sat(st.domain(), Y == 1)


def test_sdiv_int_min_by_minus_one_is_ub(ctx):
    x, y = Input("%x", i8), Input("%y", i8)
    d = BinOp("%d", BinOpKind.SDIV, x, y)
    st = _run(Program("p", [x, y], [d], d), ctx)

    assert not _sat(st.domain(), X == 0x80, Y == 0xFF)
    assert _sat(st.domain(), X == 0x80, Y == 1)


def test_add_nsw_overflow_is_poison(ctx):
    x, y = Input("%x", i8), Input("%y", i8)
    r = BinOp("%r", BinOpKind.ADD, x, y, flags=[BinOpFlag.NSW])
    st = _run(Program("p", [x, y], [r], r), ctx)

    np = st[r].non_poison
    assert z3.is_false(z3.simplify(z3.substitute(np, (X, i8.const(127)), (Y, i8.const(1)))))
    assert z3.is_true(z3.simplify(z3.substitute(np, (X, i8.const(126)), (Y, i8.const(1)))))


def test_oversized_shift_is_poison(ctx):
    x = Input("%x", i8)
    r = BinOp("%r", BinOpKind.SHL, x, IntConst(i8, 8))
    st = _run(Program("p", [x], [r], r), ctx)

    assert z3.is_false(z3.simplify(st[r].non_poison))


def test_inputs_are_recorded_as_input_vars(ctx):
    x, y = Input("%x", i8), Input("%y", i8)
    r = BinOp("%r", BinOpKind.XOR, x, y)
    st = _run(Program("p", [x, y], [r], r), ctx)

    assert [str(v) for v in st.get_input_vars()] == ["%x", "%y"]
    assert st.get_foralls() == []
    assert [e.var.name for e in st.get_values()] == ["%x", "%y", "%r"]


def test_undef_operand_is_universally_quantified(ctx):
    x = Input("%x", i8)
    r = BinOp("%r", BinOpKind.OR, x, UndefValue(i8))
    st = _run(Program("p", [x], [r], r), ctx)

    foralls = st.get_foralls()
    assert len(foralls) == 1 and is_undef_var(foralls[0])
    _, undef_vars = st.return_val
    assert [str(v) for v in undef_vars] == [str(foralls[0])]


def test_i1_undef_is_boolean(ctx):
    c = ICmp("%c", ICmpCond.EQ, Input("%x", i8), IntConst(i8, 0))
    s = Select("%s", UndefValue(i1), IntConst(i8, 1), IntConst(i8, 2))
    x = c.a
    st = _run(Program("p", [x], [c, s], s), ctx)

    (u,) = st.get_foralls()
    assert z3.is_bool(u)


def test_hole_has_tag_guarded_value(ctx):
    hole = ConstantInput("%_reservedc0", i8)
    st = _run(Program("p", [hole], [], hole), ctx, is_source=False)

    val = st[hole]
    assert hole.ty_var.get_id() in {v.get_id() for v in expr_vars(val.value)}
    assert z3.is_false(z3.simplify(z3.substitute(val.non_poison, (hole.ty_var, z3.BitVecVal(2, 2)))))
    assert len(st.get_foralls()) == 1


def test_hole_with_undef_and_poison_disabled_is_plain(ctx):
    hole = ConstantInput("%_reservedc0", i8)
    cfg = SynthConfig(disable_undef_input=True, disable_poison_input=True)
    st = _run(Program("p", [hole], [], hole), ctx, cfg, is_source=False)

    val = st[hole]
    assert z3.eq(val.value, z3.BitVec(hole.name, 8))
    assert z3.is_true(val.non_poison)
    assert st.get_foralls() == []


def test_non_hole_constant_has_no_tag(ctx):
    c = ConstantInput("%c", i8)
    st = _run(Program("p", [c], [], c), ctx)

    assert c.ty_var is None
    assert z3.eq(st[c].value, z3.BitVec("%c", 8))


def test_preconditions_go_to_pre(ctx):
    x = Input("%x", i8)
    c = ICmp("%c", ICmpCond.ULT, x, IntConst(i8, 10))
    st = _run(Program("p", [x], [c], x, preconditions=[c]), ctx)

    assert len(st.pre) == 1
    assert not _sat(st.pre(), X == 10)


def test_aggregate_build_and_extract(ctx):
    x = Input("%x", i8)
    ty = StructType((i8, i8))
    agg = MakeAggregate("%agg", ty, [x, IntConst(i8, 7)])
    e = ExtractValue("%e", agg, 1)
    st = _run(Program("p", [x], [agg, e], e), ctx)

    assert z3.simplify(st[e].value).as_long() == 7


def test_vector_binop_is_lane_wise(ctx):
    vty = VectorType(i8, 2)
    v = Input("%v", vty)
    r = BinOp("%r", BinOpKind.ADD, v, v)
    st = _run(Program("p", [v], [r], r), ctx)

    lanes = st[r]
    assert len(lanes) == 2
    assert [str(x) for x in st.get_input_vars()] == ["%v#0", "%v#1"]


def test_fresh_numbering_restarts(ctx):
    ctx.fresh_numbering()
    first = ctx.fresh_id()
    ctx.fresh_id()
    ctx.fresh_numbering()
    assert ctx.fresh_id() == first == 0


def test_and_expr_flattens_and_subtracts():
    a, b, c = z3.Bools("a b c")
    e = AndExpr([z3.And(a, b), z3.BoolVal(True), c, a])
    assert len(e) == 3

    other = AndExpr([b])
    e.subtract(other)
    assert [str(t) for t in e] == ["a", "c"]
    assert z3.is_true(AndExpr()())
