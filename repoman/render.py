"""
Rendering functions for repoman output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.table import Table

from .domain.operation import OperationStatus, OperationSummary
from .domain.status import GcReport, OrphanReport, RepoStatus

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    OperationStatus.SUCCESS: "[green]✓[/green]",
    OperationStatus.FAILED: "[red]✗[/red]",
}


def _table(title: str = None) -> Table:
    return Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold magenta")


def render_summary(summary: OperationSummary) -> None:
    """
    Render a bulk operation summary.

    Args:
        summary: Result of init/sync/update across repositories
    """
    if summary.total == 0:
        console.print(f"[yellow]Nothing to {summary.operation}.[/yellow]")
        return

    table = _table(title=f"{summary.operation.capitalize()} results")
    table.add_column("", width=1)
    table.add_column("Repository", style="cyan")
    table.add_column("Result")

    for detail in summary.details:
        if detail.status == OperationStatus.FAILED:
            result = f"[red]{detail.error}[/red]"
        elif 'clones' in detail.metadata:
            outcomes = [f"{c['clone']}: {c['outcome']}" for c in detail.metadata['clones']]
            result = ', '.join(outcomes) if outcomes else detail.action
        else:
            result = detail.message or detail.action
        table.add_row(_STATUS_STYLE[detail.status], detail.repo_name, result)

    console.print(table)
    colour = "green" if summary.success else "red"
    console.print(
        f"[{colour}]{summary.successful} succeeded, {summary.failed} failed[/{colour}]"
    )


def render_repo_list(rows: List[Dict[str, Any]], verbose: bool = False) -> None:
    if not rows:
        console.print("[yellow]Vault is empty. Add a repository with 'repoman add <url>'.[/yellow]")
        return

    table = _table(title="Vault")
    table.add_column("Name", style="cyan")
    table.add_column("Pristine", justify="center")
    table.add_column("Clones", justify="right")
    if verbose:
        table.add_column("URL", style="dim")
        table.add_column("Aliases")
        table.add_column("Latest tag", style="green")
        table.add_column("Last sync", style="dim")

    for row in rows:
        cells = [
            row['name'],
            "[green]✓[/green]" if row['pristine'] else "[dim]-[/dim]",
            str(len(row.get('clones') or [])),
        ]
        if verbose:
            cells += [
                row.get('url') or '',
                ', '.join(row.get('aliases') or []),
                row.get('latest_tag') or '',
                (row.get('last_sync') or 'never')[:19],
            ]
        table.add_row(*cells)
    console.print(table)


def render_status(status: RepoStatus) -> None:
    """
    Render the status of one repository and its clones.
    """
    console.print(f"[bold cyan]{status.name}[/bold cyan]  [dim]{status.urls[0] if status.urls else ''}[/dim]")
    if status.pristine_exists:
        console.print(
            f"  pristine: {status.pristine_path} "
            f"(default {status.default_branch or '?'}, {len(status.branches)} branches, "
            f"latest tag {status.latest_tag or '-'})"
        )
    else:
        console.print("  pristine: [yellow]not initialized[/yellow]")
    last_sync = status.last_sync.isoformat()[:19] if status.last_sync else "never"
    console.print(f"  last sync: {last_sync} ({status.last_sync_kind or '-'}), "
                  f"interval {status.sync_interval or 'default'}s")

    if not status.clones:
        console.print("  [dim]no clones[/dim]")
        return

    table = _table()
    table.add_column("Clone", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("State")
    table.add_column("Ahead/Behind", justify="right")
    table.add_column("Alternates")

    for clone in status.clones:
        if not clone.exists:
            table.add_row(clone.name, clone.branch or '', "[red]missing[/red]", "", "")
            continue
        state = f"[yellow]dirty ({clone.changed_files})[/yellow]" if clone.dirty else "[green]clean[/green]"
        divergence = f"↑{clone.ahead} ↓{clone.behind}" if clone.has_upstream else "[dim]no upstream[/dim]"
        alternates = "[green]ok[/green]" if clone.alternates.healthy else "[red]broken[/red]"
        table.add_row(clone.name, clone.branch or "(detached)", state, divergence, alternates)
    console.print(table)


def render_gc(report: GcReport) -> None:
    verb = "Would remove" if report.dry_run else "Removed"
    if report.stale_clones:
        table = _table(title=f"Clones older than {report.days} days")
        table.add_column("Repository", style="cyan")
        table.add_column("Clone")
        table.add_column("Last commit", style="dim")
        table.add_column("Age (days)", justify="right")
        for stale in report.stale_clones:
            table.add_row(stale.repo, stale.clone, stale.last_commit.isoformat()[:19], f"{stale.age_days:.0f}")
        console.print(table)
    else:
        console.print(f"No clones older than {report.days} days.")

    count = len(report.stale_clones) if report.dry_run else len(report.removed_clones)
    console.print(f"{verb} {count} stale clone(s).")
    action = "Would run" if report.dry_run else "Ran"
    console.print(f"{action} git gc on {len(report.pristines_collected)} pristine(s).")
    for error in report.errors:
        err_console.print(f"[red]✗ {error}[/red]")


def render_orphans(report: OrphanReport) -> None:
    if not report.orphaned_dirs and not report.dangling_records:
        console.print("[green]No orphaned clones.[/green]")
        return
    verb = "Removed" if report.cleaned else "Found"
    for directory in report.orphaned_dirs:
        console.print(f"{verb} orphaned clone directory: {directory}")
    for record in report.dangling_records:
        console.print(f"{verb} record of missing clone: {record['repo']}/{record['clone']} ({record['path']})")
    if not report.cleaned:
        console.print("[dim]Run 'repoman orphans --cleanup' to remove them.[/dim]")


def render_aliases(aliases: Dict[str, str]) -> None:
    if not aliases:
        console.print("[yellow]No aliases defined.[/yellow]")
        return
    table = _table(title="Aliases")
    table.add_column("Alias", style="cyan")
    table.add_column("Repository")
    for alias, target in sorted(aliases.items()):
        table.add_row(alias, target)
    console.print(table)
