"""
constsynth - Runtime Configuration & Execution Context

Read-only configuration flags for constant synthesis, plus the per-process
execution context that replaces global mutable state:
- fresh-name numbering shared by the symbolic executor (reset per synthesis call)
- advisory memory-pressure signals read by the preprocessor and the solver
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
import itertools
import sys


UsageProbe = Callable[[], float]


@dataclass(frozen=True)
class SynthConfig:
    """
    Synthesis behavior toggles. Defaults allow every hole kind and never skip the solver.
    """
    disable_undef_input: bool = False   # holes may not be instantiated as undef
    disable_poison_input: bool = False  # holes may not be instantiated as poison
    debug: bool = False                 # dump values/constraints and keep an event trace
    smt_timeout_ms: int = 10_000
    max_instances: int = 128            # cap for manual type-tag instantiation
    memory_limit_mb: Optional[float] = None  # None => no memory signals ever fire
    skip_smt: bool = False              # solver declines every query (verdict: Skip)


def _rss_mb() -> float:
    """Peak resident set size of this process in MiB."""
    import resource

    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports KiB, macOS reports bytes
    if sys.platform == "darwin":
        return usage / (1024.0 * 1024.0)
    return usage / 1024.0


class ExecutionContext:
    """
    Explicit replacement for process-wide symbolic-execution globals.

    Usage:
        ctx = ExecutionContext(memory_limit_mb=4096)
        ctx.fresh_numbering()
        name = f"undef_{ctx.fresh_id()}"
    """

    def __init__(self, memory_limit_mb: Optional[float] = None, usage_probe: Optional[UsageProbe] = None):
        self.memory_limit_mb = memory_limit_mb
        self._usage_probe = usage_probe or _rss_mb
        self._counter = itertools.count()

    @classmethod
    def from_config(cls, config: SynthConfig, usage_probe: Optional[UsageProbe] = None) -> "ExecutionContext":
        return cls(memory_limit_mb=config.memory_limit_mb, usage_probe=usage_probe)

    def fresh_numbering(self) -> None:
        """Restart fresh-variable numbering (once per pair of executions)."""
        self._counter = itertools.count()

    def fresh_id(self) -> int:
        return next(self._counter)

    def memory_pressure(self) -> bool:
        """True once usage exceeds half the configured limit. Coarse, advisory."""
        if self.memory_limit_mb is None:
            return False
        return self._usage_probe() >= self.memory_limit_mb / 2

    def memory_exhausted(self) -> bool:
        if self.memory_limit_mb is None:
            return False
        return self._usage_probe() >= self.memory_limit_mb
