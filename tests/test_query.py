from __future__ import annotations

import z3

from constsynth.execution.executor import sym_exec
from constsynth.execution.state import State
from constsynth.language.ir import (
    BinOp, BinOpKind, ICmp, ICmpCond, Input, IntConst, PoisonValue, Program, Transform,
)
from constsynth.language.types import i8
from constsynth.verification.query import QueryBuilder


def _builder(transform, ctx, **kwargs):
    ctx.fresh_numbering()
    src = sym_exec(State(transform.src, True, ctx))
    tgt = sym_exec(State(transform.tgt, False, ctx))
    return QueryBuilder(transform, src, tgt, ctx=ctx, **kwargs)


def test_shared_precondition_is_dropped_from_source(ctx):
    x = Input("%x", i8)
    c = ICmp("%c", ICmpCond.ULT, x, IntConst(i8, 10))
    src = Program("src", [x], [c], x, preconditions=[c])
    tgt = Program("tgt", [x], [c], x, preconditions=[c])

    qb = _builder(Transform("t", src, tgt), ctx)

    assert z3.is_true(qb.pre_src)
    assert not z3.is_true(qb.pre_tgt)


def test_refinement_collapses_to_false_when_target_is_always_poison(ctx):
    x = Input("%x", i8)
    src = Program("src", [x], [], x)
    tgt = Program("tgt", [x], [], PoisonValue(i8))

    assert z3.is_false(_builder(Transform("t", src, tgt), ctx).refinement_formula())


def test_variable_classes(add_const_transform, ctx):
    qb = _builder(add_const_transform, ctx)

    assert [str(v) for v in qb.input_vars()] == ["%x"]
    assert len(qb.forall_vars()) == 1
    assert [str(v) for v in qb.hole_vars()] == ["ty_%_reservedc0", "%_reservedc0"]
    assert [h.name for h in qb.holes] == ["%_reservedc0"]
    assert len(qb.undef_qvars) == 1


def test_queries_are_traced(add_const_transform, ctx):
    events = []
    qb = _builder(add_const_transform, ctx, trace=lambda event, **data: events.append(event))

    qb.domain_shrink_formula()
    qb.refinement_formula()

    assert events[0] == "query_domain"
    assert "query_refinement" in events
    assert "instantiate_hole" in events


def test_domain_query_is_unsat_without_ub(add_const_transform, ctx):
    qb = _builder(add_const_transform, ctx)
    s = z3.Solver()
    s.add(qb.domain_shrink_formula())
    assert s.check() == z3.unsat


def _check(fml):
    s = z3.Solver()
    s.add(fml)
    return s.check()


def test_domain_monotonicity(ctx):
    x, y = Input("%x", i8), Input("%y", i8)
    d = BinOp("%d", BinOpKind.UDIV, x, y)
    r = BinOp("%d", BinOpKind.AND, x, y)
    divides = Program("div", [x, y], [d], d)
    total = Program("and", [x, y], [r], r)

    # equal domains, and a target defined on more inputs than the source
    assert _check(_builder(Transform("same", divides, divides), ctx).domain_shrink_formula()) == z3.unsat
    assert _check(_builder(Transform("wider", divides, total), ctx).domain_shrink_formula()) == z3.unsat
    # target rejects y == 0, which the source accepts
    assert _check(_builder(Transform("narrower", total, divides), ctx).domain_shrink_formula()) == z3.sat
