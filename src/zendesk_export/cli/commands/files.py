"""
Commands working on the local export directory: ``read`` and ``clean``
"""

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from ...core.atomic_file_manager import AtomicFileManager
from ...models.export_models import ExportError
from ..utils.async_runner import async_command
from .export import load_settings, output_option


def _file_manager(ctx: click.Context, output: Optional[str], output_path: str) -> AtomicFileManager:
    try:
        return AtomicFileManager(output or output_path)
    except ExportError as e:
        console: Console = ctx.obj["console"]
        console.print(f"[red]{escape(str(e))}[/red]")
        ctx.exit(1)


@click.command()
@click.argument("path")
@output_option
@click.pass_context
@async_command
async def read(ctx: click.Context, path: str, output: Optional[str]) -> None:
    """
    Print a saved JSON document.

    PATH is relative to the output directory, e.g. data/users/1.json.
    """
    console: Console = ctx.obj["console"]
    config = await load_settings(ctx, require_credentials=False)
    file_manager = _file_manager(ctx, output, config.export.output_path)

    try:
        document = await file_manager.read_json(path)
    except ExportError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        ctx.exit(1)

    console.print_json(data=document)


@click.command()
@click.option(
    "--max-age-hours",
    type=float,
    default=24.0,
    show_default=True,
    help="Only remove temporary files older than this",
)
@output_option
@click.pass_context
@async_command
async def clean(ctx: click.Context, max_age_hours: float, output: Optional[str]) -> None:
    """
    Remove temporary files left behind by interrupted exports.

    Completed files are never touched.
    """
    console: Console = ctx.obj["console"]
    config = await load_settings(ctx, require_credentials=False)
    file_manager = _file_manager(ctx, output, config.export.output_path)

    removed = await file_manager.cleanup_temp_files(max_age_hours=max_age_hours)
    if removed:
        console.print(f"[green]Removed {removed} temporary file(s)[/green]")
    else:
        console.print("No temporary files to remove")
