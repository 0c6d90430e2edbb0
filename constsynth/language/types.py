"""
Type system for the constsynth IR.

Integer types are fixed-width bit-vectors. Structs and vectors are aggregates
whose symbolic value is a tuple holding one value per child (recursively);
leaves are StateValue pairs.

Every type knows how to:
- create symbolic input/undef/poison values
- relate a source and a target value (refines)
- decompose aggregate values (extract) and print model values (print_val)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Tuple, Union

import z3

from ..engines.z3_engine.exprs import StateValue


Val = Union[StateValue, Tuple["Val", ...]]


class Type:
    """Base class for IR types."""

    def is_aggregate(self) -> bool:
        return False

    def is_struct(self) -> bool:
        return False

    def is_void(self) -> bool:
        return False

    def mk_var(self, name: str) -> Val:
        raise NotImplementedError

    def mk_undef(self, name: str) -> Tuple[Val, List[z3.ExprRef]]:
        raise NotImplementedError

    def mk_poison(self) -> Val:
        raise NotImplementedError

    def refines(self, src_state: Any, tgt_state: Any, a: Val, b: Val) -> Tuple[z3.BoolRef, z3.BoolRef]:
        """Return (poison_constraint, value_constraint) for 'b refines a'."""
        raise NotImplementedError

    def print_val(self, v: z3.ExprRef) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class VoidType(Type):
    def is_void(self) -> bool:
        return True

    def __str__(self) -> str:
        return "void"


@dataclass(frozen=True)
class IntType(Type):
    bits: int

    def __post_init__(self):
        if self.bits < 1:
            raise ValueError(f"Integer width must be positive, got {self.bits}")

    @property
    def sort(self) -> z3.BitVecSortRef:
        return z3.BitVecSort(self.bits)

    def const(self, n: int) -> z3.BitVecNumRef:
        return z3.BitVecVal(n, self.bits)

    def mk_var(self, name: str) -> Val:
        return StateValue(z3.BitVec(name, self.bits), z3.BoolVal(True))

    def mk_undef(self, name: str) -> Tuple[Val, List[z3.ExprRef]]:
        # a one-bit undef is a boolean choice
        if self.bits == 1:
            b = z3.Bool(name)
            return StateValue(z3.If(b, self.const(1), self.const(0)), z3.BoolVal(True)), [b]
        var = z3.BitVec(name, self.bits)
        return StateValue(var, z3.BoolVal(True)), [var]

    def mk_poison(self) -> Val:
        return StateValue(self.const(0), z3.BoolVal(False))

    def refines(self, src_state: Any, tgt_state: Any, a: Val, b: Val) -> Tuple[z3.BoolRef, z3.BoolRef]:
        poison = z3.Implies(a.non_poison, b.non_poison)
        value = z3.Implies(z3.And(a.non_poison, b.non_poison), a.value == b.value)
        return poison, value

    def print_val(self, v: z3.ExprRef) -> str:
        if not z3.is_bv_value(v):
            return str(v)
        n = v.as_long()
        if self.bits > 1 and n >= 1 << (self.bits - 1):
            return f"{n} ({n - (1 << self.bits)})"
        return str(n)

    def __str__(self) -> str:
        return f"i{self.bits}"


class AggregateType(Type):
    """Common behavior of structs and vectors."""

    def is_aggregate(self) -> bool:
        return True

    def num_elements(self) -> int:
        raise NotImplementedError

    def get_child(self, i: int) -> Type:
        raise NotImplementedError

    def children(self) -> List[Type]:
        return [self.get_child(i) for i in range(self.num_elements())]

    def extract(self, val: Val, i: int) -> Val:
        if not isinstance(val, tuple) or len(val) != self.num_elements():
            raise TypeError(f"Value {val!r} does not match aggregate type {self}")
        return val[i]

    def mk_var(self, name: str) -> Val:
        return tuple(t.mk_var(f"{name}#{i}") for i, t in enumerate(self.children()))

    def mk_undef(self, name: str) -> Tuple[Val, List[z3.ExprRef]]:
        vals, uvars = [], []
        for i, t in enumerate(self.children()):
            v, vs = t.mk_undef(f"{name}#{i}")
            vals.append(v)
            uvars.extend(vs)
        return tuple(vals), uvars

    def mk_poison(self) -> Val:
        return tuple(t.mk_poison() for t in self.children())

    def refines(self, src_state: Any, tgt_state: Any, a: Val, b: Val) -> Tuple[z3.BoolRef, z3.BoolRef]:
        poison, value = [], []
        for i, t in enumerate(self.children()):
            p, v = t.refines(src_state, tgt_state, self.extract(a, i), self.extract(b, i))
            poison.append(p)
            value.append(v)
        return z3.And(*poison), z3.And(*value)


@dataclass(frozen=True)
class StructType(AggregateType):
    elements: Tuple[Type, ...]

    def is_struct(self) -> bool:
        return True

    def num_elements(self) -> int:
        return len(self.elements)

    def get_child(self, i: int) -> Type:
        return self.elements[i]

    def __str__(self) -> str:
        return "{" + ", ".join(str(t) for t in self.elements) + "}"


@dataclass(frozen=True)
class VectorType(AggregateType):
    element: Type
    length: int

    def num_elements(self) -> int:
        return self.length

    def get_child(self, i: int) -> Type:
        return self.element

    def __str__(self) -> str:
        return f"<{self.length} x {self.element}>"


def leaves(ty: Type, val: Val) -> List[StateValue]:
    """Flatten a value into its StateValue leaves (program order)."""
    if not ty.is_aggregate():
        return [val]
    out: List[StateValue] = []
    for i, child in enumerate(ty.children()):
        out.extend(leaves(child, ty.extract(val, i)))
    return out


def zip_leaves(ty: Type, fn: Callable[..., StateValue], *vals: Val) -> Val:
    """Combine same-typed values leaf by leaf."""
    if not ty.is_aggregate():
        return fn(*vals)
    return tuple(
        zip_leaves(child, fn, *(ty.extract(v, i) for v in vals))
        for i, child in enumerate(ty.children())
    )


def scalar(ty: Type) -> Type:
    """Element type of a vector, the type itself otherwise."""
    return ty.element if isinstance(ty, VectorType) else ty


i1 = IntType(1)
i8 = IntType(8)
i16 = IntType(16)
i32 = IntType(32)
i64 = IntType(64)
void = VoidType()
