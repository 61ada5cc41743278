"""Reconcile commands - drive the artifact engine from manifests on disk."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..artifact.manager import ArtifactManager
from ..artifact.naming import artifact_path
from ..controllers import PassReport, Reconciler
from ..settings import Settings
from ..watcher import run_watch_loop


def run_path(settings: Settings, name: str, priority: int, medium: str, artifact_type: str) -> str:
    """Print the path an artifact would be materialized at."""
    path = artifact_path(name, priority, medium, artifact_type, settings.layout())
    Console(highlight=False).print(path, markup=False, soft_wrap=True)
    return path


def build_reconciler(settings: Settings) -> Reconciler:
    return Reconciler(
        lambda: ArtifactManager.from_settings(settings),
        namespace=settings.namespace,
        timeout_s=settings.pull_timeout_s,
    )


def print_report(console: Console, report: PassReport, *, verbose: bool = False) -> None:
    for error in report.errors:
        console.print(f"[red]error[/red] {error}", highlight=False)

    rows = report.outcomes if verbose else report.failed
    if rows:
        table = Table(title="Reconciliation" if verbose else "Failures")
        table.add_column("Kind", style="bold")
        table.add_column("Resource")
        table.add_column("Medium")
        table.add_column("Reason")
        table.add_column("Message")
        for outcome in rows:
            resource = f"{outcome.namespace}/{outcome.name}"
            if not outcome.mediums:
                table.add_row(outcome.kind, resource, "-", "-", "nothing to do")
            for m in outcome.mediums:
                if not verbose and m.ok:
                    continue
                style = "green" if m.ok else "red"
                table.add_row(outcome.kind, resource, m.medium, f"[{style}]{m.reason}[/{style}]", m.message)
        console.print(table)

    failed = len(report.failed) + len(report.errors)
    status = "[green]ok[/green]" if report.ok else f"[red]{failed} failure(s)[/red]"
    console.print(f"[bold]{len(report.outcomes)}[/bold] resource(s) reconciled: {status}")


def run_reconcile(settings: Settings, manifest_dir: Path, *, verbose: bool = False) -> int:
    """
    Run one reconciliation pass.

    Returns 0 when every resource converged, 1 otherwise.
    """
    console = Console(stderr=True)
    report = build_reconciler(settings).run_once(manifest_dir)
    print_report(console, report, verbose=verbose)
    return 0 if report.ok else 1


def run_watch(settings: Settings, manifest_dir: Path) -> None:
    """
    Reconcile on every manifest change and every resync interval.

    This is a blocking command that runs until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)
    reconciler = build_reconciler(settings)

    console.print(f"[bold]Watching[/bold] {manifest_dir}")
    console.print(f"  Resync interval: {settings.resync_interval_s:g}s")
    console.print()
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    passes = 0

    def on_pass(trigger: str) -> None:
        nonlocal passes
        passes += 1
        timestamp = datetime.now().strftime("%H:%M:%S")
        console.print(f"[dim]{timestamp}[/dim] pass #{passes} ({trigger})")
        print_report(console, reconciler.run_once(manifest_dir))

    run_watch_loop(manifest_dir, on_pass, settings.resync_interval_s)
    console.print()
    console.print(f"[bold]Stopped.[/bold] Ran {passes} pass(es).")
