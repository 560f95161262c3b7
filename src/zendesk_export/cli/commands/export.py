"""
Export commands: ``users`` and ``tickets``
"""

import asyncio
from typing import Optional

import click
from rich.console import Console

from ...core.config_manager import ConfigurationError, ConfigurationManager
from ...core.export_orchestrator import export_session
from ...models.config_models import AppConfig
from ...models.entity_models import EntityKind
from ...models.export_models import ExportError
from ..ui.display import create_error_display, create_summary_panel
from ..utils.async_runner import GracefulKiller, async_command
from ..utils.logging_config import configure_logging
from ..utils.validation import (
    get_validation_suggestions,
    show_validation_error,
    validate_concurrency_limit,
    validate_entity_argument,
    validate_output_directory,
)

output_option = click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory that receives the data/ tree (default: from configuration)",
)
max_concurrent_option = click.option(
    "--max-concurrent",
    "-c",
    type=int,
    default=None,
    help="Maximum users or tickets exported at once (1-50)",
)


def check_concurrency_limit(ctx: click.Context, max_concurrent: Optional[int]) -> None:
    """Exit with status 2 when an explicit --max-concurrent is out of range."""
    if max_concurrent is None:
        return

    is_valid, error_msg = validate_concurrency_limit(max_concurrent)
    if not is_valid:
        suggestions = get_validation_suggestions("concurrency", str(max_concurrent))
        show_validation_error(ctx.obj["console"], error_msg or "", suggestions)
        ctx.exit(2)


async def load_settings(ctx: click.Context, require_credentials: bool = True) -> AppConfig:
    """
    Load configuration for a command and apply its logging settings.

    Exits with status 1 when the configuration is unusable.
    """
    console: Console = ctx.obj["console"]
    config_manager = ConfigurationManager()

    try:
        config = await config_manager.load_config(ctx.obj.get("config_path"))
        if require_credentials:
            config_manager.require_credentials(config)
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    configure_logging(
        console,
        verbose=ctx.obj.get("verbose", False),
        level=config.logging.level,
        file_path=config.logging.file_path,
    )
    return config


async def run_export(
    ctx: click.Context,
    kind: EntityKind,
    target_arg: str,
    output: Optional[str],
    max_concurrent: Optional[int],
) -> None:
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj.get("verbose", False)

    is_valid, error_msg, target = validate_entity_argument(target_arg, kind)
    if not is_valid or target is None:
        suggestions = get_validation_suggestions(f"{kind.value}_id", target_arg)
        show_validation_error(console, error_msg or "", suggestions)
        ctx.exit(2)

    check_concurrency_limit(ctx, max_concurrent)

    config = await load_settings(ctx)

    output_dir = output or config.export.output_path
    is_valid, error_msg, output_path = validate_output_directory(output_dir)
    if not is_valid or output_path is None:
        suggestions = get_validation_suggestions("output_directory", output_dir)
        show_validation_error(console, error_msg or "", suggestions)
        ctx.exit(2)

    what = f"all {kind.value}s" if target.is_all else f"{kind.value} {target}"
    console.print(f"[cyan]Exporting {what} to {output_path}[/cyan]")

    killer = GracefulKiller()
    killer.register_cleanup(
        lambda: console.print("\n[yellow]Stopping export, cleaning up...[/yellow]")
    )
    killer.install()

    try:
        async with export_session(
            config, output_path=str(output_path), max_concurrent=max_concurrent
        ) as orchestrator:
            if kind == EntityKind.USER:
                summary = await orchestrator.export_users(target)
            else:
                summary = await orchestrator.export_tickets(target)
    except asyncio.CancelledError:
        if not killer.kill_now:
            raise
        console.print(
            "[yellow]Export interrupted; run the same command again to continue[/yellow]"
        )
        ctx.exit(130)
    except ExportError as e:
        console.print(create_error_display(e, "Export Error"))
        if verbose:
            console.print_exception()
        ctx.exit(1)
    else:
        console.print(create_summary_panel(summary))
        ctx.exit(0 if summary.success else 1)
    finally:
        killer.uninstall()


@click.command()
@click.argument("target", metavar="ID|all")
@output_option
@max_concurrent_option
@click.pass_context
@async_command
async def users(
    ctx: click.Context, target: str, output: Optional[str], max_concurrent: Optional[int]
) -> None:
    """
    Export a user, or every user, from Zendesk.

    Each user is saved to data/users/{id}.json. Users already saved are
    skipped.

    Examples:
      zendesk-export users 1
      zendesk-export users all --output ./backup
    """
    await run_export(ctx, EntityKind.USER, target, output, max_concurrent)


@click.command()
@click.argument("target", metavar="ID|all")
@output_option
@max_concurrent_option
@click.pass_context
@async_command
async def tickets(
    ctx: click.Context, target: str, output: Optional[str], max_concurrent: Optional[int]
) -> None:
    """
    Export a ticket, or every ticket, with comments, attachments and recordings.

    Tickets are saved under data/tickets/{id}/. Anything already saved is
    skipped, so an interrupted export can simply be run again.

    Examples:
      zendesk-export tickets 42
      zendesk-export tickets all --max-concurrent 10
    """
    await run_export(ctx, EntityKind.TICKET, target, output, max_concurrent)
