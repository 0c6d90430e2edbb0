r"""
constsynth - Quantifier Preprocessor

Rewrites `forall qvars. e` into a form Z3 handles well before submission:

1. Boolean quantified variables are eliminated by case-splitting:
       forall b. e  ==>  e[b:=true] /\ e[b:=false]
   Exact, always applied.
2. Hole type-tags are instantiated manually (concrete / undef / poison),
   producing a disjunction of tag-free quantified formulas, each guarded by the
   tag values it assumed:
       \/_i (forall qvars. e_i) /\ guard_i
   The instance set is capped (max_instances) and abandoned early under memory
   pressure. Capping only drops disjuncts, so the capped formula implies the
   exact one: it can make a satisfiable query unsat, never the reverse.
3. With nothing to instantiate, or under memory pressure: forall qvars. e.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import z3

from ..engines.z3_engine.exprs import mk_forall, unique
from ..language.ir import ConstantInput, TAG_BITS, TAG_CONCRETE, TAG_POISON, TAG_UNDEF
from ..runtime import SynthConfig

MemoryPressure = Callable[[], bool]
Trace = Callable[..., None]

DEFAULT_MAX_INSTANCES = 128


def no_pressure() -> bool:
    return False


def no_trace(event: str, **data) -> None:
    return None


@dataclass(frozen=True)
class Instance:
    formula: z3.BoolRef
    guard: z3.BoolRef


class InstanceSet:
    """
    Bounded accumulator of (formula, guard) instances owned by one
    preprocessing call. Formulas are keyed by AST id; when the same formula is
    reached under several tag choices their guards are joined with Or.
    """

    def __init__(self, max_instances: int = DEFAULT_MAX_INSTANCES):
        self.max_instances = max_instances
        self._items: Dict[int, Instance] = {}

    def add(self, formula: z3.BoolRef, guard: z3.BoolRef) -> None:
        key = formula.get_id()
        prev = self._items.get(key)
        if prev is not None:
            guard = z3.Or(prev.guard, guard)
        self._items[key] = Instance(formula, guard)

    def full(self) -> bool:
        return len(self._items) >= self.max_instances

    def __iter__(self):
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)


def eliminate_bool_quantifiers(
    qvars: Sequence[z3.ExprRef], e: z3.BoolRef
) -> Tuple[List[z3.ExprRef], z3.BoolRef]:
    """Case-split every boolean quantified variable away. Returns (remaining qvars, e)."""
    remaining: List[z3.ExprRef] = []
    for var in unique(qvars):
        if not z3.is_bool(var):
            remaining.append(var)
            continue
        e = z3.And(
            z3.simplify(z3.substitute(e, (var, z3.BoolVal(True)))),
            z3.simplify(z3.substitute(e, (var, z3.BoolVal(False)))),
        )
    return remaining, e


def tag_choices(config: SynthConfig) -> List[int]:
    out = [TAG_CONCRETE]
    if not config.disable_undef_input:
        out.append(TAG_UNDEF)
    if not config.disable_poison_input:
        out.append(TAG_POISON)
    return out


def instantiate_type_tags(
    e: z3.BoolRef,
    holes: Sequence[ConstantInput],
    config: SynthConfig,
    *,
    max_instances: int = DEFAULT_MAX_INSTANCES,
    memory_pressure: MemoryPressure = no_pressure,
    trace: Trace = no_trace,
) -> InstanceSet:
    """Split e on the type-tag of each hole, in order, with pruning and a cap."""
    instances = InstanceSet(max_instances)
    instances.add(e, z3.BoolVal(True))
    choices = tag_choices(config)

    for hole in holes:
        var = hole.ty_var
        if var is None:
            continue

        nxt = InstanceSet(max_instances)
        for inst in instances:
            for i in choices:
                num = z3.BitVecVal(i, TAG_BITS)
                newexpr = z3.substitute(inst.formula, (var, num))
                if newexpr.eq(inst.formula):
                    # tag does not occur: one representative is enough
                    nxt.add(newexpr, inst.guard)
                    break

                newexpr = z3.simplify(newexpr)
                if z3.is_false(newexpr):
                    continue

                # keep the tag in the guard for counterexample printing
                nxt.add(newexpr, z3.And(inst.guard, var == num))
        instances = nxt
        trace("instantiate_hole", hole=hole.name, instances=len(instances))

        if instances.full() or memory_pressure():
            trace("instantiate_stop", hole=hole.name, instances=len(instances), capped=instances.full())
            break

    return instances


def preprocess(
    e: z3.BoolRef,
    qvars: Sequence[z3.ExprRef],
    undef_qvars: Sequence[z3.ExprRef],
    holes: Sequence[ConstantInput],
    config: Optional[SynthConfig] = None,
    *,
    max_instances: Optional[int] = None,
    memory_pressure: MemoryPressure = no_pressure,
    trace: Trace = no_trace,
) -> z3.BoolRef:
    """Quantify e over qvars in a solver-friendly way."""
    config = config or SynthConfig()
    if max_instances is None:
        max_instances = config.max_instances

    qvars, e = eliminate_bool_quantifiers(qvars, e)

    if not undef_qvars or not holes or memory_pressure():
        return mk_forall(qvars, e)

    instances = instantiate_type_tags(
        e, holes, config,
        max_instances=max_instances,
        memory_pressure=memory_pressure,
        trace=trace,
    )

    disjuncts = [z3.And(mk_forall(qvars, inst.formula), inst.guard) for inst in instances]
    if not disjuncts:
        return z3.BoolVal(False)
    if len(disjuncts) == 1:
        return disjuncts[0]
    return z3.Or(*disjuncts)
