from __future__ import annotations

from .types import IntType, StructType, VectorType, VoidType
from .ir import (
    Assume, BinOp, BinOpFlag, BinOpKind, ConstantInput, ExtractValue, HOLE_PREFIX,
    ICmp, ICmpCond, Input, IntConst, MakeAggregate, PoisonValue, Program, Select,
    Transform, UndefValue,
)
from .validator import TransformValidator, ValidationError

__all__ = [
    "IntType",
    "StructType",
    "VectorType",
    "VoidType",
    "Assume",
    "BinOp",
    "BinOpFlag",
    "BinOpKind",
    "ConstantInput",
    "ExtractValue",
    "HOLE_PREFIX",
    "ICmp",
    "ICmpCond",
    "Input",
    "IntConst",
    "MakeAggregate",
    "PoisonValue",
    "Program",
    "Select",
    "Transform",
    "UndefValue",
    "TransformValidator",
    "ValidationError",
]
