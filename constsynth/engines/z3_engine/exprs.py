"""
constsynth - Z3 expression helpers

Small formula utilities shared by the executor, the query builder and the
counterexample renderer:
- StateValue: a (value, non_poison) leaf
- AndExpr: an ordered conjunction that supports structural subtraction
- free-variable collection, quantifier construction, undef-variable naming
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import z3


UNDEF_PREFIX = "undef_"


@dataclass(frozen=True)
class StateValue:
    """Value of one leaf of a program value, paired with its non-poison flag."""
    value: Optional[z3.ExprRef]
    non_poison: Optional[z3.BoolRef]

    def is_valid(self) -> bool:
        return self.value is not None and self.non_poison is not None


class AndExpr:
    """
    Ordered conjunction of boolean terms.

    Conjuncts are keyed by AST id, so structurally identical terms
    (z3 hash-conses them) are stored once and can be subtracted.
    """

    def __init__(self, terms: Iterable[z3.BoolRef] = ()):
        self._terms: Dict[int, z3.BoolRef] = {}
        for t in terms:
            self.add(t)

    def add(self, term: z3.BoolRef) -> None:
        if z3.is_true(term):
            return
        if z3.is_and(term):
            for child in term.children():
                self.add(child)
            return
        self._terms.setdefault(term.get_id(), term)

    def subtract(self, other: "AndExpr") -> None:
        for key in other._terms:
            self._terms.pop(key, None)

    def copy(self) -> "AndExpr":
        return AndExpr(self._terms.values())

    def __iter__(self):
        return iter(self._terms.values())

    def __len__(self) -> int:
        return len(self._terms)

    def __call__(self) -> z3.BoolRef:
        terms = list(self._terms.values())
        if not terms:
            return z3.BoolVal(True)
        if len(terms) == 1:
            return terms[0]
        return z3.And(*terms)


def unique(exprs: Iterable[z3.ExprRef]) -> List[z3.ExprRef]:
    """De-duplicate by AST id, keeping first occurrence order."""
    seen: Dict[int, z3.ExprRef] = {}
    for e in exprs:
        seen.setdefault(e.get_id(), e)
    return list(seen.values())


def is_value(e: z3.ExprRef) -> bool:
    """True for literals: numerals and boolean constants."""
    return z3.is_bv_value(e) or z3.is_true(e) or z3.is_false(e) or z3.is_int_value(e)


def is_var(e: z3.ExprRef) -> bool:
    return z3.is_const(e) and e.decl().kind() == z3.Z3_OP_UNINTERPRETED


def is_undef_var(e: z3.ExprRef) -> bool:
    return is_var(e) and e.decl().name().startswith(UNDEF_PREFIX)


def expr_vars(e: z3.ExprRef) -> List[z3.ExprRef]:
    """Free uninterpreted constants of e, sorted by name."""
    found: Dict[int, z3.ExprRef] = {}
    seen = set()
    stack = [e]
    while stack:
        node = stack.pop()
        key = node.get_id()
        if key in seen:
            continue
        seen.add(key)
        if z3.is_quantifier(node):
            stack.append(node.body())
            continue
        if is_var(node):
            found[key] = node
            continue
        if z3.is_app(node):
            stack.extend(node.children())
    return sorted(found.values(), key=lambda v: v.decl().name())


def mk_forall(qvars: Iterable[z3.ExprRef], body: z3.BoolRef) -> z3.BoolRef:
    qvars = unique(qvars)
    if not qvars:
        return body
    return z3.ForAll(qvars, body)


def not_implies(a: z3.BoolRef, b: z3.BoolRef) -> z3.BoolRef:
    return z3.And(a, z3.Not(b))
