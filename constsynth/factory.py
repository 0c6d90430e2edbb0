"""
constsynth Factory
==================
One-call entry points around ConstantSynth.
This module wires validation, configuration and reporting together
so callers only deal with a Transform and the outcome.
"""

from typing import Any, Dict, Optional, Tuple

from rich.console import Console

from .runtime import ExecutionContext, SynthConfig
from .engines.z3_engine.solver import Solver
from .engines.z3_engine.suggestion import SuggestionEngine
from .language.ir import Transform
from .verification.errors import Errors
from .verification.synthesizer import ConstantSynth


def synthesize_constants(
    transform: Transform,
    config: Optional[SynthConfig] = None,
    check_each_var: bool = False,
    solver: Optional[Solver] = None,
) -> Tuple[Errors, Dict[Any, Any]]:
    """
    Factory Method: validates a Transform, runs synthesis, and returns the outcome.

    Args:
        transform: Source/target pair; target holes are named with the reserved prefix.
        config: Optional synthesis configuration override.
        check_each_var: Render counterexamples in per-variable mode.
        solver: Optional solver override (tests inject fakes here).

    Returns:
        (errors, holes) where holes maps each hole to its value.
        holes is empty unless the refinement query produced a model.

    Raises:
        ValidationError: If the transform is malformed.
    """
    # 1. Context (fresh per call, shared by solver and executor)
    config = config or SynthConfig()
    ctx = ExecutionContext.from_config(config)
    if solver is None:
        solver = Solver(config, ctx)

    # 2. Validate + Synthesize
    synth = ConstantSynth(transform, check_each_var, config=config, ctx=ctx, solver=solver)
    holes: Dict[Any, Any] = {}
    errors = synth.synthesize(holes)
    return errors, holes


def synthesize_and_report(
    transform: Transform,
    config: Optional[SynthConfig] = None,
    console: Optional[Console] = None,
) -> Tuple[Errors, Dict[Any, Any]]:
    """
    Factory Method: same as synthesize_constants, then prints a rich report.
    Useful for REPL usage.
    """
    errors, holes = synthesize_constants(transform, config)
    SuggestionEngine(console).report(errors, holes, transform.name)
    return errors, holes
