"""Progress and summary output for migrations"""
from rich.console import Console
from rich.table import Table
from typing import Optional

from git_baretree.models.report import MigrationReport, MigrationState
from git_baretree.logging_config import get_logger

console = Console()
logger = get_logger(__name__)

STAGE_MESSAGES = {
    MigrationState.VALIDATING: "Validating source repository",
    MigrationState.TRANSPLANTING: "Moving files into the worktree layout",
    MigrationState.SYNTHESIZING_LINKS: "Linking worktree to the shared store",
    MigrationState.RELOCATING_EXTERNAL_WORKTREES: "Relocating external worktrees",
    MigrationState.REWRITING_SUBMODULES: "Rewriting submodule links",
    MigrationState.DONE: "Migration complete",
}


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False, output: Optional[Console] = None):
        self.verbose = verbose
        self.debug_mode = debug
        self.console = output or console

    def stage(self, state: MigrationState, detail: str = "") -> None:
        """Announce a migration stage."""
        message = STAGE_MESSAGES.get(state, state.value)
        if detail:
            message += f" [dim]({detail})[/dim]"
        if state == MigrationState.DONE:
            self.console.print(f"[green]✓[/green] {message}")
        else:
            self.console.print(f"[cyan]→[/cyan] {message}...")

    def info(self, message: str) -> None:
        self.console.print(message)

    def print_summary(self, report: MigrationReport) -> None:
        """Display every path the migration created, then warnings and next steps."""
        table = Table(title="Baretree layout")
        table.add_column("Kind")
        table.add_column("Branch")
        table.add_column("Path")

        table.add_row("store", "", report.store_path)
        if report.primary_worktree:
            table.add_row("worktree", report.current_branch, report.primary_worktree)
        if report.default_branch_worktree:
            table.add_row("worktree", report.default_branch or "", report.default_branch_worktree)
        for path in report.relocated_worktrees:
            table.add_row("worktree", "", path, style="cyan")
        for name, reason in report.failed_worktrees:
            table.add_row("failed", name, reason, style="red")

        self.console.print(table)

        if report.default_branch:
            self.console.print(f"Default branch: {report.default_branch}")

        if report.warnings:
            self.console.print("\n[yellow]Warnings:[/yellow]")
            for warning in report.warnings:
                self.console.print(f"  [yellow]•[/yellow] {warning}")

        if report.source_removed:
            self.console.print(f"\nRemoved original repository at {report.source}")
        elif report.repository_root and report.repository_root != report.source:
            self.console.print("\nThe original repository was kept. Remove it with:")
            self.console.print(f"  rm -rf {report.source}")

        if report.primary_worktree:
            self.console.print(f"\nStart working: cd {report.primary_worktree}")
