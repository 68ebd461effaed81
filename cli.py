"""Anticipation engine: CLI demo runner.

Loads a fixture snapshot, runs one anticipation cycle against an in-memory
store, and renders the ranked signals, the badge counts, and the learned
feedback weights in the terminal using Rich.

Usage:
    uv run python cli.py
    uv run python cli.py path/to/snapshot.json
"""

import asyncio
import json
import pathlib
import sys

from rich.console import Console
from rich.table import Table

from core.store import SignalStore
from core.worker import AnticipationWorker
from feedback.loop import FeedbackLoop
from feedback.repository import InMemoryWeightRepository
from schemas.context import AnticipationContext
from schemas.result import CycleResult, SignalCounts
from schemas.signal import SignalSeverity
from schemas.weight import SignalWeight

console = Console()

_FIXTURE = pathlib.Path(__file__).parent / "fixtures" / "demo_context.json"

_SEVERITY_STYLE = {
    SignalSeverity.CRITICAL: "bold red",
    SignalSeverity.URGENT: "red",
    SignalSeverity.ATTENTION: "yellow",
    SignalSeverity.INFO: "dim",
}


# ── Tables ────────────────────────────────────────────────────────────────────

def _print_signals(result: CycleResult) -> None:
    """Render the ranked signal table for one cycle."""
    if not result.signals:
        console.print("\n[yellow]No signals produced.[/yellow]")
        return

    table = Table(title="Ranked Signals", show_lines=True, border_style="bright_black")
    table.add_column("#",        style="dim",  width=3, justify="right")
    table.add_column("Severity", width=10,     justify="center")
    table.add_column("Title",    style="bold", min_width=30)
    table.add_column("Domain",   width=16)
    table.add_column("Source",   style="dim",  min_width=18)

    for i, s in enumerate(result.signals, 1):
        style = _SEVERITY_STYLE[s.severity]
        table.add_row(
            str(i),
            f"[{style}]{s.severity.value}[/{style}]",
            s.title,
            s.domain.value,
            s.source,
        )

    console.print()
    console.print(table)


def _print_counts(counts: SignalCounts) -> None:
    console.print(
        f"\n  total [cyan]{counts.total}[/cyan]"
        f"   urgent [red]{counts.urgent}[/red]"
        f"   attention [yellow]{counts.attention}[/yellow]"
        f"   info [dim]{counts.info}[/dim]"
    )


def _print_weights(weights: list[SignalWeight]) -> None:
    table = Table(title="Feedback Weights", border_style="bright_black")
    table.add_column("Type",          min_width=20)
    table.add_column("Domain",        min_width=16)
    table.add_column("Generated",     justify="right")
    table.add_column("Effectiveness", justify="right")
    table.add_column("Modifier",      justify="right")

    for w in sorted(weights, key=lambda w: (w.signal_type.value, w.domain.value)):
        table.add_row(
            w.signal_type.value,
            w.domain.value,
            str(w.total_generated),
            f"{w.effectiveness_score:.0%}",
            f"{w.weight_modifier:.2f}x",
        )

    console.print()
    console.print(table)


# ── Entry point ───────────────────────────────────────────────────────────────

async def _run(fixture: pathlib.Path) -> None:
    with open(fixture) as f:
        context = AnticipationContext.model_validate(json.load(f))

    store = SignalStore()
    worker = AnticipationWorker(
        store=store,
        feedback=FeedbackLoop(InMemoryWeightRepository()),
        context_provider=lambda: context,
    )

    console.rule("[bold]Anticipation Engine[/bold]")
    console.print(f"  snapshot   [cyan]{context.now.isoformat()}[/cyan] ({context.day_of_week})")
    console.print(f"  detectors  [cyan]{len(worker.pipeline.registry)} registered[/cyan]")

    result = await worker.run_cycle()
    if result is None:
        console.print("\n[bold red]Cycle failed. See the log for details.[/bold red]")
        return

    _print_signals(result)
    _print_counts(store.counts(context.now))
    _print_weights(result.weights_used)

    if result.detectors_failed:
        console.print(f"\n[red]failed detectors: {', '.join(result.detectors_failed)}[/red]")
    console.print(f"[dim]cycle took {result.run_duration_ms:.1f}ms[/dim]\n")


def main() -> None:
    fixture = pathlib.Path(sys.argv[1]) if len(sys.argv) > 1 else _FIXTURE
    asyncio.run(_run(fixture))


if __name__ == "__main__":
    main()
