from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from ...verification.errors import ErrorEntry, Errors


def _kind(entry: ErrorEntry) -> str:
    if entry.is_definite:
        return "COUNTEREXAMPLE"
    msg = entry.message
    if msg == "Timeout":
        return "TIMEOUT"
    if msg == "Skip":
        return "SKIP"
    if msg == "Invalid expr":
        return "INVALID"
    if msg.startswith("SMT Error"):
        return "SOLVER_ERROR"
    return "UNKNOWN"


class SuggestionEngine:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def report(self, errors: Errors, holes: Dict[Any, Any], name: str = ""):
        if not errors:
            if holes:
                self._print_success(name)
                self._print_hole_table(holes)
            else:
                self._print_nothing(name)
            return

        self._print_header(name)

        for i, entry in enumerate(errors, 1):
            self._render_entry(i, entry)

        if holes:
            self._print_hole_table(holes)

        self._print_footer()

    def _render_entry(self, index: int, entry: ErrorEntry):
        kind = _kind(entry)
        color = "red" if entry.is_definite else "yellow"
        title = f"[bold {color}]{kind} #{index}[/bold {color}]"

        self.console.print(Panel(Text(entry.message.rstrip("\n"), style="white"), title=title, border_style=color, width=96))
        self._print_suggestions(kind)

    def _print_hole_table(self, holes: Dict[Any, Any]):
        table = Table(title="🧪 Synthesized Constants", show_header=True, header_style="bold cyan", width=96)
        table.add_column("Hole", style="cyan", width=36)
        table.add_column("Value", style="white")
        for hole in sorted(holes, key=lambda h: getattr(h, "name", str(h))):
            value = holes[hole]
            if isinstance(value, tuple):
                value = "{ " + ", ".join(str(v) for v in value) + " }"
            table.add_row(str(hole), str(value))
        self.console.print(table)
        self.console.print()

    def _print_suggestions(self, kind: str):
        table = Table(title="💡 Suggestions", show_header=True, header_style="bold yellow", width=96)
        table.add_column("Strategy", style="cyan", width=26)
        table.add_column("What to do", style="white")

        if kind == "COUNTEREXAMPLE":
            table.add_row(
                "Guard the target",
                "The target is undefined for the example input while the source is not. Drop the offending assume/division or add a precondition."
            )
            table.add_row(
                "Check the example",
                "Replay the listed input values through both programs: the first diverging value is usually the culprit."
            )

        elif kind == "TIMEOUT":
            table.add_row(
                "Raise the limit",
                "Increase SynthConfig.smt_timeout_ms, or narrow the integer widths involved."
            )
            table.add_row(
                "Restrict holes",
                "Set disable_undef_input / disable_poison_input to shrink the number of instantiated cases."
            )

        elif kind == "SOLVER_ERROR":
            table.add_row(
                "Read the reason",
                "Z3 gave up for the quoted reason. Quantifier-heavy queries often benefit from fewer holes per transform."
            )

        elif kind == "SKIP":
            table.add_row(
                "Solver disabled",
                "The query was never submitted: skip_smt is set or the memory limit was reached."
            )

        elif kind == "INVALID":
            table.add_row(
                "Report a bug",
                "A malformed query reached the solver. Enable debug and inspect the trace."
            )

        else:
            table.add_row(
                "Review transform",
                "Check hole types, preconditions and instruction flags."
            )

        self.console.print(table)
        self.console.print()

    def _print_header(self, name: str):
        self.console.print()
        self.console.print(Panel(
            f"[bold white]Constant Synthesis Report[/bold white] {name}".rstrip(),
            style="bold red",
            subtitle="[red]Synthesis Findings[/red]",
            width=96
        ))
        self.console.print()

    def _print_success(self, name: str):
        self.console.print()
        self.console.print(Panel(
            "[bold green]Constants found.[/bold green]\n"
            f"The target refines the source for every input{' in ' + name if name else ''}.",
            style="bold green",
            title="✅ Synthesis Succeeded",
            width=96
        ))
        self.console.print()

    def _print_nothing(self, name: str):
        self.console.print()
        self.console.print(Panel(
            "[bold yellow]No constants synthesized.[/bold yellow]\n"
            "No hole assignment makes the target refine the source"
            f"{' in ' + name if name else ''}.",
            style="bold yellow",
            title="⚠️ Synthesis Failed",
            width=96
        ))
        self.console.print()

    def _print_footer(self):
        self.console.print(
            "[dim]Tip: tooling outcomes (timeout, skip, solver error) are not proof of incorrectness; "
            "only [bold red]COUNTEREXAMPLE[/bold red] entries are.[/dim]"
        )
        self.console.print()
