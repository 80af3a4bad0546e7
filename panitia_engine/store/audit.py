"""
Assignment Audit Tool — workload and schedule-conflict report.

Connects to the Assignment Store and prints, for operators:
- every active member's workload and overload level
- every live program whose committee has time conflicts

Programs can be rescheduled after their committee was formed, so this report
is how such conflicts surface.

Usage:
    python -m panitia_engine.store.audit
    python -m panitia_engine.store.audit --database-url postgresql://...
    python -m panitia_engine.store.audit --verbose
"""

from __future__ import annotations

import argparse
import sys
import time

from rich.console import Console
from rich.table import Table

from panitia_engine.config import settings
from panitia_engine.engine.panitia import PanitiaService
from panitia_engine.registry.schema import TERMINAL_PROGRAM_STATUSES, WorkloadLevel

console = Console()

_LEVEL_STYLES = {
    WorkloadLevel.AVAILABLE: "green",
    WorkloadLevel.HEAVY: "yellow",
    WorkloadLevel.OVERLOADED: "bold red",
}


def run_audit(service: PanitiaService, verbose: bool = False) -> bool:
    """
    Print the workload and conflict report.

    Args:
        service: Service bound to the store to audit.
        verbose: Also list members with no assignments and conflict-free programs.

    Returns:
        True if no live program has a conflicting assignee, False otherwise.
    """
    console.print("\n[bold blue]═══ Panitia Assignment Audit ═══[/bold blue]\n")
    start_time = time.time()

    summary = service.workload_summary()
    console.print(f"  Active members: [bold]{summary.total_members}[/bold]")
    console.print(f"  Average assignments: [bold]{summary.average_assignments}[/bold]")
    console.print(f"  Overloaded members: [bold]{summary.overloaded_members}[/bold]")

    table = Table(title="Workload", show_lines=False)
    table.add_column("Member", style="cyan")
    table.add_column("Assignments", justify="right")
    table.add_column("Level")
    for entry in service.workload_report():
        if entry.count == 0 and not verbose:
            continue
        style = _LEVEL_STYLES[entry.level]
        table.add_row(entry.name, str(entry.count), f"[{style}]{entry.level.value}[/{style}]")
    console.print(table)

    names = {member.id: member.name for member in service.directory.list_active_members()}
    programs = service.directory.list_programs()
    program_names = {program.id: program.name for program in programs}

    conflict_count = 0
    conflicts_table = Table(title="Schedule conflicts", show_lines=True)
    conflicts_table.add_column("Program", style="cyan")
    conflicts_table.add_column("Member", style="yellow")
    conflicts_table.add_column("Overlaps with")
    for program in programs:
        if program.status in TERMINAL_PROGRAM_STATUSES:
            continue
        reports = service.detect_conflicts(program.id)
        if not reports and verbose:
            conflicts_table.add_row(program.name, "—", "[green]none[/green]")
        for report in reports:
            conflict_count += 1
            conflicts_table.add_row(
                program.name,
                names.get(report.member_id, str(report.member_id)[:8]),
                ", ".join(program_names.get(pid, str(pid)[:8]) for pid in report.conflicting_program_ids),
            )
    console.print(conflicts_table)

    elapsed = time.time() - start_time
    if conflict_count:
        console.print(f"[bold red]✗ {conflict_count} conflicting assignee(s)[/bold red]")
    else:
        console.print("[bold green]✓ No schedule conflicts[/bold green]")
    console.print(f"  Audit time: {elapsed:.3f}s")
    console.print("\n[bold blue]═══ Audit Complete ═══[/bold blue]\n")
    return conflict_count == 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Panitia workload and schedule-conflict auditor"
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database connection string (defaults to .env settings)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Include idle members and conflict-free programs",
    )
    args = parser.parse_args()

    if args.database_url:
        settings.database_url = args.database_url
    service = PanitiaService.from_settings(settings)
    is_clean = run_audit(service, verbose=args.verbose)
    sys.exit(0 if is_clean else 1)


if __name__ == "__main__":
    main()
