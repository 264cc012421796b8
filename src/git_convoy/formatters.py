"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from .core import BranchReport, ConvoySummary, RepositoryReport


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def _print_json(self, output: dict):
        self.console.print(
            json.dumps(output, indent=2, default=str),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )

    def print_repository_list(self, reports: list[RepositoryReport]):
        """Print configured repositories."""
        if self.use_json:
            self._print_json(
                {
                    "repositories": [
                        {**r.descriptor.to_dict(), "lifecycle": r.lifecycle.value}
                        for r in reports
                    ]
                }
            )
            return

        if not reports:
            self.console.print("[dim]No repositories configured[/]")
            return

        table = Table(title="Convoy")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("URL")
        table.add_column("Directory", style="dim")
        table.add_column("State", justify="center")

        for report in reports:
            table.add_row(
                report.name,
                report.descriptor.url,
                str(report.descriptor.directory),
                self._get_lifecycle_display(report),
            )

        self.console.print(table)
        self.console.print(f"\n[bold]Total:[/] {len(reports)} repositories")

    def print_reports(self, reports: list[RepositoryReport], summary: ConvoySummary):
        """Print the per-branch results of a pass."""
        if self.use_json:
            self._print_json(
                {
                    "repositories": [r.to_dict() for r in reports],
                    "summary": summary.to_dict(),
                }
            )
        else:
            self._print_report_table(reports, summary)

    def _print_report_table(self, reports: list[RepositoryReport], summary: ConvoySummary):
        """Print rich table output."""
        from .core import SyncOutcome

        table = Table(title="Convoy Status")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Branch")
        table.add_column("Upstream", style="dim")
        table.add_column("Result", justify="center")
        table.add_column("Stats")

        for report in reports:
            if report.failed:
                error = f"[red]{escape(report.error)}[/]"
                table.add_row(report.name, "", "", "[red]✗ failed[/]", error)
                continue
            if not report.lifecycle.is_ready:
                table.add_row(report.name, "", "", self._get_lifecycle_display(report), "")
                continue

            # Untracked branches are not part of the report
            branches = [b for b in report.branches if b.outcome != SyncOutcome.SKIPPED]
            if not branches:
                table.add_row(report.name, "", "", self._get_lifecycle_display(report), "")
                continue

            for i, branch in enumerate(branches):
                branch_display = branch.name
                if branch.name == report.original_head:
                    branch_display = f"[bold]{branch.name}[/]"
                result = self._get_outcome_display(branch)
                if report.blocked_reason:
                    result = f"[red]{report.blocked_reason}[/]"
                table.add_row(
                    report.name if i == 0 else "",
                    branch_display,
                    branch.upstream.tracking_ref if branch.upstream else "",
                    result,
                    self.format_stats(branch),
                )

        self.console.print(table)
        self.console.print()
        self._print_summary(summary)

    def _get_lifecycle_display(self, report: RepositoryReport) -> str:
        """Get working-copy state display."""
        from .core import LifecycleOutcome

        match report.lifecycle:
            case LifecycleOutcome.READY:
                return "[green]ready[/]"
            case LifecycleOutcome.CLONED:
                return "[green]cloned[/]"
            case LifecycleOutcome.URL_UPDATED:
                return "[yellow]remote url updated[/]"
            case LifecycleOutcome.MISSING:
                return "[dim]not cloned[/]"
            case LifecycleOutcome.NOT_A_DIRECTORY:
                return "[red]not a directory[/]"
            case LifecycleOutcome.UNLISTABLE:
                return "[red]unlistable[/]"
            case LifecycleOutcome.NOT_EMPTY:
                return "[red]not empty[/]"
            case _:
                return "[dim]?[/]"

    def _get_outcome_display(self, branch: BranchReport) -> str:
        """Get branch outcome display."""
        from .core import SyncOutcome

        match branch.outcome:
            case SyncOutcome.UPDATED:
                return "[green]updated[/]"
            case SyncOutcome.BLOCKED:
                return "[red]blocked[/]"
            case SyncOutcome.REPORTED:
                return "[blue]reported[/]"
            case SyncOutcome.VISITED:
                return "[dim]fetched[/]"
            case _:
                return "[yellow]skipped[/]"

    @staticmethod
    def format_stats(branch: BranchReport) -> str:
        """Render ahead/behind and change counts with the classic symbols."""
        if branch.status is None and branch.divergence is None:
            return ""

        behind = branch.divergence.commits_behind if branch.divergence else 0
        ahead = branch.divergence.commits_ahead if branch.divergence else 0
        counts = (behind, ahead, branch.conflicts, branch.index, branch.working_tree)
        if not any(counts):
            return "[green]✔[/]"

        parts = []
        if behind > 0:
            parts.append(f"[cyan]↓{behind}[/]")
        if ahead > 0:
            parts.append(f"[cyan]↑{ahead}[/]")
        if branch.conflicts > 0:
            parts.append(f"[red]☠{branch.conflicts}[/]")
        if branch.index > 0:
            parts.append(f"[yellow]★{branch.index}[/]")
        if branch.working_tree > 0:
            parts.append(f"[magenta]+{branch.working_tree}[/]")
        return "  ".join(parts)

    def _print_summary(self, summary: ConvoySummary):
        """Print summary."""
        parts = [f"[bold]Total:[/] {summary.total}"]

        if summary.ready > 0:
            parts.append(f"[green]✔ Ready:[/] {summary.ready}")
        if summary.cloned > 0:
            parts.append(f"[green]Cloned:[/] {summary.cloned}")
        if summary.updated > 0:
            parts.append(f"[green]Updated:[/] {summary.updated}")
        if summary.behind > 0:
            parts.append(f"[cyan]↓ Behind:[/] {summary.behind}")
        if summary.ahead > 0:
            parts.append(f"[cyan]↑ Ahead:[/] {summary.ahead}")
        if summary.dirty > 0:
            parts.append(f"[yellow]★ Dirty:[/] {summary.dirty}")
        if summary.blocked > 0:
            parts.append(f"[red]Blocked:[/] {summary.blocked}")
        if summary.missing > 0:
            parts.append(f"[dim]Not cloned:[/] {summary.missing}")
        if summary.refused > 0:
            parts.append(f"[red]Ignored:[/] {summary.refused}")
        if summary.failed > 0:
            parts.append(f"[red]✗ Errors:[/] {summary.failed}")

        self.console.print(" | ".join(parts))
