"""
Main CLI entry point for zendesk-export
"""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.traceback import install

from .. import __version__
from .utils.logging_config import configure_logging

# Install rich traceback handler for better error display
install(show_locals=False)

# Initialize console
console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="zendesk-export")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: ~/.zendesk-export/config.yaml)",
)
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, no_color: bool, config_path: Optional[Path]
) -> None:
    """
    zendesk-export - Zendesk Support data exporter

    Saves users and tickets (with comments, attachments and voice recordings)
    from Zendesk into a local data/ directory. Records already saved are
    skipped, so exports can be re-run to pick up where they stopped.

    Examples:
      zendesk-export users all                 # Save every user
      zendesk-export tickets 42                # Save one ticket and its comments
      zendesk-export tickets all -o ./backup   # Save every ticket to ./backup
      zendesk-export shell                     # Interactive prompt
    """
    ctx.ensure_object(dict)

    # Configure console
    if no_color:
        ctx.obj["console"] = Console(force_terminal=False, no_color=True)
    else:
        ctx.obj["console"] = console

    configure_logging(ctx.obj["console"], verbose=verbose)

    # Store global options
    ctx.obj["verbose"] = verbose
    ctx.obj["no_color"] = no_color
    ctx.obj["config_path"] = config_path


# Import and register commands at module level to support testing
from .commands import config, export, files, shell  # noqa: E402

cli.add_command(export.users)
cli.add_command(export.tickets)
cli.add_command(shell.shell)
cli.add_command(files.read)
cli.add_command(files.clean)
cli.add_command(config.config)


def main() -> None:
    """Main entry point for the CLI application"""
    try:
        cli()

    except KeyboardInterrupt:
        console.print("\n[yellow]Operation interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
