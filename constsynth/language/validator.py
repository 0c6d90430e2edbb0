"""
constsynth Validator - Structural Validation

Performs structural validation on a Transform before any query is built:
- Scope checking (operands defined before use, within the same program)
- Naming (result names unique and '%'-prefixed)
- Type consistency (operand types, shared input types, return types)
- Hole placement (holes only appear as target inputs)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .ir import (
    Assume, BinOp, ConstantInput, ExtractValue, ICmp, Input, IntConst,
    MakeAggregate, PoisonValue, Program, Select, Transform, UndefValue, Value,
)
from .types import IntType, VectorType, i1, scalar


class ValidationError(Exception):
    """Base exception for structural validation errors."""
    def __init__(self, message: str, program: Optional[str] = None):
        self.message = message
        self.program = program
        prefix = f"{program}: " if program else ""
        super().__init__(f"{prefix}{message}")


@dataclass
class ValidationContext:
    """Context tracking for validation scope."""
    program: str
    defined: Set[int] = field(default_factory=set)
    names: Set[str] = field(default_factory=set)


class TransformValidator:
    """
    Ensures a Transform is well-formed before symbolic execution.
    Fail-closed: the first error found is raised after the whole pass.
    """

    def __init__(self):
        self.context: Optional[ValidationContext] = None
        self.errors: List[ValidationError] = []

    def validate(self, transform: Transform) -> bool:
        """Main validation entry point."""
        self.errors = []

        self._validate_program(transform.src, is_source=True)
        self._validate_program(transform.tgt, is_source=False)

        if str(transform.src.type) != str(transform.tgt.type):
            self._error(
                f"Source returns {transform.src.type} but target returns {transform.tgt.type}",
                transform.name,
            )

        src_inputs: Dict[str, Value] = {v.name: v for v in transform.src.inputs}
        for v in transform.tgt.inputs:
            other = src_inputs.get(v.name)
            if other is not None and str(other.type) != str(v.type):
                self._error(f"Input '{v.name}' has type {other.type} in source but {v.type} in target", transform.name)

        if self.errors:
            raise self.errors[0]

        return True

    def _error(self, message: str, program: Optional[str] = None):
        self.errors.append(ValidationError(message, program or (self.context.program if self.context else None)))

    def _validate_program(self, program: Program, is_source: bool):
        self.context = ValidationContext(program=program.name)

        for v in program.inputs:
            if not isinstance(v, (Input, ConstantInput)):
                self._error(f"'{v.name}' is listed as an input but is a {v.__class__.__name__}")
                continue
            if isinstance(v, ConstantInput) and v.is_hole and is_source:
                self._error(f"Hole '{v.name}' may only appear in the target program")
            self._define(v)

        for instr in program.instrs:
            for op in instr.operands():
                self._validate_operand(op, instr)
            self._validate_instr(instr)
            if not instr.type.is_void():
                self._define(instr)

        self._validate_operand(program.ret, None)
        if program.ret.type.is_void():
            self._error("Return value must not be void")

        for pre in program.preconditions:
            self._validate_operand(pre, None)
            if str(pre.type) != str(i1):
                self._error(f"Precondition '{pre.name}' must be of type i1, got {pre.type}")

        self.context = None

    def _define(self, v: Value):
        if not v.name.startswith("%"):
            self._error(f"Value name '{v.name}' must start with '%'")
        if v.name in self.context.names:
            self._error(f"Duplicate value name: '{v.name}'")
        self.context.names.add(v.name)
        self.context.defined.add(id(v))

    def _validate_operand(self, op: Value, user: Optional[Value]):
        if isinstance(op, (IntConst, UndefValue, PoisonValue)):
            return
        if id(op) not in self.context.defined:
            where = f" in '{user.name or user}'" if user is not None else ""
            self._error(f"Use of undefined value '{op.name}'{where}")

    def _validate_instr(self, instr: Value):
        if isinstance(instr, BinOp):
            if str(instr.a.type) != str(instr.b.type):
                self._error(f"Operand types differ in '{instr.name}': {instr.a.type} vs {instr.b.type}")
            if not isinstance(scalar(instr.type), IntType) or (
                instr.type.is_aggregate() and not isinstance(instr.type, VectorType)
            ):
                self._error(f"Binary operator '{instr.name}' needs integer or vector operands, got {instr.type}")
            return

        if isinstance(instr, ICmp):
            if str(instr.a.type) != str(instr.b.type) or not isinstance(instr.a.type, IntType):
                self._error(f"icmp '{instr.name}' needs two integers of the same type")
            return

        if isinstance(instr, Select):
            if str(instr.cond.type) != str(i1):
                self._error(f"select '{instr.name}' condition must be i1, got {instr.cond.type}")
            if str(instr.a.type) != str(instr.b.type):
                self._error(f"select '{instr.name}' arms differ: {instr.a.type} vs {instr.b.type}")
            return

        if isinstance(instr, MakeAggregate):
            ty = instr.type
            if not ty.is_aggregate() or ty.num_elements() == 0:
                self._error(f"'{instr.name}' must build a non-empty aggregate, got {ty}")
                return
            if len(instr.elements) != ty.num_elements():
                self._error(f"'{instr.name}' expects {ty.num_elements()} elements, got {len(instr.elements)}")
                return
            for i, e in enumerate(instr.elements):
                if str(e.type) != str(ty.get_child(i)):
                    self._error(f"Element {i} of '{instr.name}' has type {e.type}, expected {ty.get_child(i)}")
            return

        if isinstance(instr, ExtractValue):
            if not 0 <= instr.index < instr.agg.type.num_elements():
                self._error(f"Index {instr.index} out of range in '{instr.name}'")
            return

        if isinstance(instr, Assume):
            if str(instr.cond.type) != str(i1):
                self._error(f"assume condition must be i1, got {instr.cond.type}")
            return

        # Unknown instruction node => fail-closed
        self._error(f"Unsupported instruction type: {instr.__class__.__name__}")
