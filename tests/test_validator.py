from __future__ import annotations

import pytest

from constsynth.language.ir import (
    Assume, BinOp, BinOpKind, ConstantInput, ICmp, ICmpCond, Input, IntConst,
    MakeAggregate, Program, Select, Transform,
)
from constsynth.language.types import StructType, i1, i8, i16
from constsynth.language.validator import TransformValidator, ValidationError


def test_well_formed_transforms_pass(add_const_transform, excludes_42_transform):
    v = TransformValidator()
    assert v.validate(add_const_transform) is True
    assert v.validate(excludes_42_transform) is True


def test_hole_in_source_fails():
    hole = ConstantInput("%_reservedc0", i8)
    t = Transform("t", Program("src", [hole], [], hole), Program("tgt", [hole], [], hole))

    with pytest.raises(ValidationError) as exc:
        TransformValidator().validate(t)
    assert "only appear in the target" in str(exc.value)
    assert exc.value.program == "src"


def test_return_types_must_match():
    x, y = Input("%x", i8), Input("%y", i16)
    t = Transform("t", Program("src", [x], [], x), Program("tgt", [y], [], y))

    with pytest.raises(ValidationError, match="returns i8 but target returns i16"):
        TransformValidator().validate(t)


def test_shared_input_types_must_match():
    t = Transform(
        "t",
        Program("src", [Input("%x", i8)], [], IntConst(i8, 0)),
        Program("tgt", [Input("%x", i16)], [], IntConst(i8, 0)),
    )
    with pytest.raises(ValidationError, match="Input '%x'"):
        TransformValidator().validate(t)


def test_use_before_definition_fails():
    x = Input("%x", i8)
    a = BinOp("%a", BinOpKind.ADD, x, x)
    b = BinOp("%b", BinOpKind.ADD, a, x)
    prog = Program("p", [x], [b, a], b)

    with pytest.raises(ValidationError, match="undefined value '%a'"):
        TransformValidator().validate(Transform("t", prog, prog))


def test_names_must_be_unique_and_prefixed():
    x = Input("%x", i8)
    dup = BinOp("%x", BinOpKind.ADD, x, x)
    with pytest.raises(ValidationError, match="Duplicate value name"):
        prog = Program("p", [x], [dup], dup)
        TransformValidator().validate(Transform("t", prog, prog))

    bare = Input("x", i8)
    with pytest.raises(ValidationError, match="must start with '%'"):
        prog = Program("p", [bare], [], bare)
        TransformValidator().validate(Transform("t", prog, prog))


def test_instruction_type_checks():
    x, y = Input("%x", i8), Input("%y", i16)
    bad_binop = BinOp("%r", BinOpKind.ADD, x, y)
    prog = Program("p", [x, y], [bad_binop], bad_binop)
    with pytest.raises(ValidationError, match="Operand types differ"):
        TransformValidator().validate(Transform("t", prog, prog))

    sel = Select("%s", x, x, x)
    prog = Program("p", [x], [sel], sel)
    with pytest.raises(ValidationError, match="condition must be i1"):
        TransformValidator().validate(Transform("t", prog, prog))

    agg = MakeAggregate("%agg", StructType((i8, i1)), [x, x])
    prog = Program("p", [x], [agg], agg)
    with pytest.raises(ValidationError, match="Element 1"):
        TransformValidator().validate(Transform("t", prog, prog))


def test_preconditions_must_be_i1():
    x = Input("%x", i8)
    prog = Program("p", [x], [], x, preconditions=[x])
    with pytest.raises(ValidationError, match="Precondition '%x' must be of type i1"):
        TransformValidator().validate(Transform("t", prog, prog))


def test_void_return_is_rejected():
    x = Input("%x", i8)
    c = ICmp("%c", ICmpCond.EQ, x, x)
    a = Assume(c)
    prog = Program("p", [x], [c, a], a)
    v = TransformValidator()
    with pytest.raises(ValidationError):
        v.validate(Transform("t", prog, prog))
    assert any("must not be void" in str(e) for e in v.errors)
