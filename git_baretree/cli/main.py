"""Command-line interface for git-baretree"""

import sys
from typing import List, Optional

from rich.console import Console

from git_baretree.cli.args import parse_args
from git_baretree.config import MigrateConfig
from git_baretree.constants import MODE_DESTINATION, MODE_IN_PLACE, MODE_MANAGED
from git_baretree.exceptions import BaretreeError
from git_baretree.logging_config import setup_logging
from git_baretree.services.display_service import DisplayService
from git_baretree.services.migration import MigrationOrchestrator

console = Console()


def config_from_args(parsed_args) -> MigrateConfig:
    """Build a MigrateConfig from parsed arguments."""
    if parsed_args.in_place:
        mode = MODE_IN_PLACE
    elif parsed_args.destination:
        mode = MODE_DESTINATION
    else:
        mode = MODE_MANAGED

    return MigrateConfig(
        source=parsed_args.source,
        mode=mode,
        destination=parsed_args.destination,
        managed_path=parsed_args.path,
        remove_source=parsed_args.remove_source,
        verbose=parsed_args.verbose,
        debug=parsed_args.debug,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    parsed_args = parse_args(argv)
    try:
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)
        config = config_from_args(parsed_args)

        if config.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        display = DisplayService(verbose=config.verbose, debug=config.debug, output=console)
        orchestrator = MigrationOrchestrator(display=display)
        report = orchestrator.run(config)
        display.print_summary(report)
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except (BaretreeError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        if parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
