"""
Interactive prompt: start exports in the background and keep typing
"""

import asyncio
import threading
from typing import Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.markup import escape

from ...core.atomic_file_manager import AtomicFileManager
from ...core.export_orchestrator import ExportOrchestrator, export_session
from ...models.entity_models import EntityKind
from ...models.export_models import ExportError, ExportTarget, MalformedInputError
from ..ui.display import create_error_display
from ..utils.async_runner import GracefulKiller, async_command
from ..utils.validation import validate_output_directory
from .export import (
    check_concurrency_limit,
    load_settings,
    max_concurrent_option,
    output_option,
)

PROMPT = "Command: "

HELP_LINES = [
    'users {id} - saves a specific User from Zendesk. To save all users, pass the '
    'string "all" instead of the User ID.',
    "tickets {id} - saves a specific Ticket from Zendesk, including comments, "
    'attachments, and recordings. To save all tickets, pass the string "all" '
    "instead of the Ticket ID.",
    "read {path} - prints a saved file, e.g. 'read data/users/1.json'.",
    "exit - waits for running exports to finish, then leaves the prompt.",
]

LineReader = Callable[[str], Awaitable[Optional[str]]]


async def read_stdin_line(prompt: str) -> Optional[str]:
    """
    Read one line from stdin without blocking the event loop.

    A daemon thread does the blocking read so an abandoned read never holds
    up interpreter exit. Returns None at end of input.
    """
    loop = asyncio.get_running_loop()
    future: "asyncio.Future[Optional[str]]" = loop.create_future()

    def deliver(line: Optional[str]) -> None:
        if not future.done():
            future.set_result(line)

    def read() -> None:
        try:
            line: Optional[str] = input(prompt)
        except EOFError:
            line = None
        if not loop.is_closed():
            loop.call_soon_threadsafe(deliver, line)

    threading.Thread(target=read, name="shell-stdin", daemon=True).start()
    return await future


class InteractiveShell:
    """Command loop dispatching exports to an orchestrator in the background."""

    def __init__(
        self,
        orchestrator: ExportOrchestrator,
        file_manager: AtomicFileManager,
        console: Console,
        reader: LineReader = read_stdin_line,
    ):
        self.orchestrator = orchestrator
        self.file_manager = file_manager
        self.console = console
        self.reader = reader

    async def run(self) -> None:
        self.console.print(
            "[bold]zendesk-export[/bold] interactive mode. "
            "Type 'help' for commands, 'exit' to leave."
        )

        while True:
            line = await self.reader(PROMPT)
            if line is None:
                break
            if not await self.handle(line):
                break

        pending = self.orchestrator.pending_exports
        if pending:
            self.console.print(
                f"[cyan]Waiting for {pending} running export(s) to finish...[/cyan]"
            )
            await self.orchestrator.wait_for_background()

    async def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the shell should exit."""
        command = line.strip()
        if not command:
            return True

        self.console.print(f"[dim]> {escape(command)}[/dim]")
        parts = command.split()
        name = parts[0].lower()
        argument = parts[1] if len(parts) > 1 else None

        if name in ("exit", "quit"):
            return False
        if name == "users":
            self._start_export(EntityKind.USER, argument)
        elif name == "tickets":
            self._start_export(EntityKind.TICKET, argument)
        elif name == "read":
            await self._read(argument)
        elif name in ("h", "?") or "help" in command.lower():
            for help_line in HELP_LINES:
                self.console.print(escape(help_line))
        else:
            self.console.print(
                f"{escape(parts[0])} is not a valid command. "
                "Type 'h' to see a list of available commands."
            )
        return True

    def _start_export(self, kind: EntityKind, argument: Optional[str]) -> None:
        label = kind.value.title()
        command = f"{kind.value}s"
        try:
            target = ExportTarget.parse(argument, kind)
        except MalformedInputError:
            self.console.print(
                f"[red]Error: must pass a valid {label} ID.[/red]\n"
                f"Example: '{command} 1'"
            )
            return

        self.orchestrator.submit(kind, target)
        what = f"all {command}" if target.is_all else f"{kind.value} {target}"
        self.console.print(
            f"Downloading {what}, this may take a few minutes. Feel free to issue "
            "other commands in the meantime, as this will continue in the background."
        )

    async def _read(self, argument: Optional[str]) -> None:
        if not argument:
            self.console.print(
                "[red]Error: must pass a file path.[/red]\n"
                "Example: 'read data/users/1.json'"
            )
            return

        try:
            document = await self.file_manager.read_json(argument)
        except ExportError as e:
            self.console.print(f"[red]{escape(str(e))}[/red]")
            return

        self.console.print_json(data=document)


@click.command()
@output_option
@max_concurrent_option
@click.pass_context
@async_command
async def shell(
    ctx: click.Context, output: Optional[str], max_concurrent: Optional[int]
) -> None:
    """
    Start the interactive prompt.

    Exports started from the prompt run in the background while further
    commands are accepted. Leaving the prompt waits for running exports;
    Ctrl-C cancels them.

    Commands: users {id|all}, tickets {id|all}, read {path}, help, exit
    """
    console: Console = ctx.obj["console"]
    check_concurrency_limit(ctx, max_concurrent)
    config = await load_settings(ctx)

    output_dir = output or config.export.output_path
    is_valid, error_msg, output_path = validate_output_directory(output_dir)
    if not is_valid or output_path is None:
        console.print(f"[red]Validation Error:[/red] {error_msg}")
        ctx.exit(2)

    killer = GracefulKiller().install()
    try:
        async with export_session(
            config, output_path=str(output_path), max_concurrent=max_concurrent
        ) as orchestrator:
            interactive = InteractiveShell(
                orchestrator, orchestrator.file_manager, console
            )
            try:
                await interactive.run()
            except asyncio.CancelledError:
                if not killer.kill_now:
                    raise
                console.print("\n[yellow]Cancelling running exports...[/yellow]")
                await orchestrator.shutdown(timeout=5.0)
                ctx.exit(130)
    except ExportError as e:
        console.print(create_error_display(e, "Export Error"))
        ctx.exit(1)
    finally:
        killer.uninstall()
