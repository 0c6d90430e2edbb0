"""
Intermediate Representation (IR) for constsynth

Defines the values, instructions and programs that the symbolic executor
consumes. A Transform pairs a source program with a target program whose
inputs may include holes: constant inputs named with the reserved
synthesis prefix whose values are to be synthesized.

Every value has a ValueKind tag:
    INPUT          - ordinary program argument (universally quantified)
    CONSTANT_INPUT - symbolic constant; holes additionally own a type-tag var
    COMPUTED       - literals and instruction results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import z3

from .types import Type, VoidType, i1


HOLE_PREFIX = "%_reservedc"

# type-tag values of a hole
TAG_CONCRETE = 0
TAG_UNDEF = 1
TAG_POISON = 2
TAG_BITS = 2


# ============================================================================
# ENUMS
# ============================================================================

class ValueKind(Enum):
    INPUT = "input"
    CONSTANT_INPUT = "constant_input"
    COMPUTED = "computed"


class BinOpKind(Enum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    UDIV = "udiv"
    SDIV = "sdiv"
    UREM = "urem"
    SREM = "srem"
    SHL = "shl"
    LSHR = "lshr"
    ASHR = "ashr"
    AND = "and"
    OR = "or"
    XOR = "xor"


class BinOpFlag(Enum):
    NSW = "nsw"
    NUW = "nuw"
    EXACT = "exact"


class ICmpCond(Enum):
    EQ = "eq"
    NE = "ne"
    UGT = "ugt"
    UGE = "uge"
    ULT = "ult"
    ULE = "ule"
    SGT = "sgt"
    SGE = "sge"
    SLT = "slt"
    SLE = "sle"


# ============================================================================
# VALUES
# ============================================================================

class Value:
    """
    Base class for all IR values.

    Values compare and hash by identity; names are for display and for
    sharing input variables between source and target.
    """

    def __init__(self, name: str, type: Type):
        self.name = name
        self.type = type

    @property
    def kind(self) -> ValueKind:
        return ValueKind.COMPUTED

    def operands(self) -> List["Value"]:
        return []

    def __str__(self) -> str:
        return f"{self.type} {self.name}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self})"


class Input(Value):
    """Ordinary program argument."""

    @property
    def kind(self) -> ValueKind:
        return ValueKind.INPUT


class ConstantInput(Value):
    """
    Symbolic constant. A constant input whose name starts with HOLE_PREFIX is a
    hole and owns a 2-bit type-tag variable (concrete / undef / poison).
    """

    def __init__(self, name: str, type: Type):
        super().__init__(name, type)
        self.ty_var: Optional[z3.BitVecRef] = None
        if self.is_hole:
            self.ty_var = z3.BitVec(f"ty_{name}", TAG_BITS)

    @property
    def kind(self) -> ValueKind:
        return ValueKind.CONSTANT_INPUT

    @property
    def is_hole(self) -> bool:
        return is_hole_name(self.name)


class IntConst(Value):
    def __init__(self, type: Type, value: int):
        super().__init__(str(value), type)
        self.value = value


class UndefValue(Value):
    def __init__(self, type: Type):
        super().__init__("undef", type)


class PoisonValue(Value):
    def __init__(self, type: Type):
        super().__init__("poison", type)


# ============================================================================
# INSTRUCTIONS
# ============================================================================

class Instr(Value):
    """Base class for instructions; the result is named after the instruction."""


class BinOp(Instr):
    def __init__(self, name: str, op: BinOpKind, a: Value, b: Value, flags: Sequence[BinOpFlag] = ()):
        super().__init__(name, a.type)
        self.op = op
        self.a = a
        self.b = b
        self.flags = frozenset(flags)

    def operands(self) -> List[Value]:
        return [self.a, self.b]


class ICmp(Instr):
    def __init__(self, name: str, cond: ICmpCond, a: Value, b: Value):
        super().__init__(name, i1)
        self.cond = cond
        self.a = a
        self.b = b

    def operands(self) -> List[Value]:
        return [self.a, self.b]


class Select(Instr):
    def __init__(self, name: str, cond: Value, a: Value, b: Value):
        super().__init__(name, a.type)
        self.cond = cond
        self.a = a
        self.b = b

    def operands(self) -> List[Value]:
        return [self.cond, self.a, self.b]


class ExtractValue(Instr):
    def __init__(self, name: str, agg: Value, index: int):
        if not agg.type.is_aggregate():
            raise TypeError(f"extractvalue needs an aggregate operand, got {agg}")
        super().__init__(name, agg.type.get_child(index))
        self.agg = agg
        self.index = index

    def operands(self) -> List[Value]:
        return [self.agg]


class MakeAggregate(Instr):
    def __init__(self, name: str, type: Type, elements: Sequence[Value]):
        super().__init__(name, type)
        self.elements = tuple(elements)

    def operands(self) -> List[Value]:
        return list(self.elements)


class Assume(Instr):
    """Immediate UB unless cond is true and not poison."""

    def __init__(self, cond: Value):
        super().__init__("", VoidType())
        self.cond = cond

    def operands(self) -> List[Value]:
        return [self.cond]

    def __str__(self) -> str:
        return f"assume {self.cond.name}"


# ============================================================================
# PROGRAMS
# ============================================================================

@dataclass
class Program:
    name: str
    inputs: List[Value]
    instrs: List[Instr]
    ret: Value
    preconditions: List[Value] = field(default_factory=list)

    @property
    def type(self) -> Type:
        return self.ret.type

    def holes(self) -> List[ConstantInput]:
        return [v for v in self.inputs if isinstance(v, ConstantInput) and v.is_hole]


@dataclass
class Transform:
    name: str
    src: Program
    tgt: Program

    def holes(self) -> List[ConstantInput]:
        """Holes in program input order: source inputs first, then target inputs."""
        out: List[ConstantInput] = []
        seen = set()
        for v in self.src.holes() + self.tgt.holes():
            if v.name not in seen:
                seen.add(v.name)
                out.append(v)
        return out


def is_hole_name(name: str) -> bool:
    return name.startswith(HOLE_PREFIX)
