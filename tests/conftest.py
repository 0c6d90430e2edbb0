from __future__ import annotations

import pytest

from constsynth.language.ir import (
    Assume, BinOp, BinOpKind, ConstantInput, ICmp, ICmpCond, Input, IntConst,
    Program, Transform,
)
from constsynth.language.types import i8
from constsynth.runtime import ExecutionContext, SynthConfig


@pytest.fixture
def config() -> SynthConfig:
    return SynthConfig(smt_timeout_ms=20_000)


@pytest.fixture
def ctx(config: SynthConfig) -> ExecutionContext:
    return ExecutionContext.from_config(config)


def build_add_const(k: int = 3) -> Transform:
    """%r = add %x, k  ==>  %r = add %x, %_reservedc0"""
    x = Input("%x", i8)
    r = BinOp("%r", BinOpKind.ADD, x, IntConst(i8, k))
    src = Program("src", [x], [r], r)

    hole = ConstantInput("%_reservedc0", i8)
    r2 = BinOp("%r", BinOpKind.ADD, x, hole)
    tgt = Program("tgt", [x, hole], [r2], r2)
    return Transform("add_const", src, tgt)


def build_return_constant() -> Transform:
    """ret %c  ==>  ret %_reservedc0"""
    c = ConstantInput("%c", i8)
    hole = ConstantInput("%_reservedc0", i8)
    src = Program("src", [c], [], c)
    tgt = Program("tgt", [hole], [], hole)
    return Transform("return_constant", src, tgt)


def build_target_excludes_42() -> Transform:
    """ret %x  ==>  assume(%x != 42); ret %x"""
    x = Input("%x", i8)
    src = Program("src", [x], [], x)
    ne = ICmp("%ne", ICmpCond.NE, x, IntConst(i8, 42))
    tgt = Program("tgt", [x], [ne, Assume(ne)], x)
    return Transform("excludes_42", src, tgt)


@pytest.fixture
def add_const_transform() -> Transform:
    return build_add_const()


@pytest.fixture
def return_constant_transform() -> Transform:
    return build_return_constant()


@pytest.fixture
def excludes_42_transform() -> Transform:
    return build_target_excludes_42()
