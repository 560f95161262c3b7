"""
Async execution utilities for CLI commands
"""

import asyncio
import logging
import signal
import sys
from functools import wraps
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import click
from rich.console import Console

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def async_command(f: F) -> Callable[..., Any]:
    """
    Decorator to run async functions in CLI context with proper error handling
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return asyncio.run(f(*args, **kwargs))  # type: ignore
        except (click.exceptions.Exit, click.ClickException, click.Abort):
            raise
        except KeyboardInterrupt:
            console = Console()
            console.print("\n[yellow]Operation interrupted by user[/yellow]")
            sys.exit(130)  # Standard exit code for SIGINT
        except Exception as e:
            console = Console()
            console.print(f"[red]Operation failed: {e}[/red]")
            sys.exit(1)

    return wrapper


class GracefulKiller:
    """
    Turns SIGINT/SIGTERM into cancellation of the running command task.

    Use inside a coroutine: ``install()`` binds the handlers to the running
    loop and the current task, ``uninstall()`` restores the defaults.
    """

    def __init__(self) -> None:
        self.kill_now = False
        self.cleanup_functions: List[Callable[[], None]] = []
        self._task: Optional["asyncio.Task[Any]"] = None
        self._installed: List[int] = []

    def install(self, task: Optional["asyncio.Task[Any]"] = None) -> "GracefulKiller":
        loop = asyncio.get_running_loop()
        self._task = task or asyncio.current_task()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._handle_signal, signum)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # Unsupported platform or not on the main thread
                logger.debug(f"Cannot install handler for signal {signum}: {e}")
                continue
            self._installed.append(signum)

        return self

    def uninstall(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in self._installed:
            loop.remove_signal_handler(signum)
        self._installed = []

    def _handle_signal(self, signum: int) -> None:
        """Handle shutdown signals"""
        if self.kill_now:
            return
        self.kill_now = True
        logger.debug(f"Received signal {signum}, cancelling")

        for cleanup_func in self.cleanup_functions:
            try:
                cleanup_func()
            except Exception as e:
                console = Console()
                console.print(f"[yellow]Cleanup error: {e}[/yellow]")

        if self._task is not None and not self._task.done():
            self._task.cancel()

    def register_cleanup(self, func: Callable[[], None]) -> None:
        """Register a cleanup function to run on shutdown"""
        self.cleanup_functions.append(func)

    def __enter__(self) -> "GracefulKiller":
        return self.install()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.uninstall()
