"""
Input validation utilities for CLI commands
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console

from ...models.entity_models import EntityKind
from ...models.export_models import ExportTarget, MalformedInputError


def validate_entity_argument(
    value: str, kind: EntityKind
) -> Tuple[bool, Optional[str], Optional[ExportTarget]]:
    """
    Validate an ``{id|all}`` argument

    Returns:
        (is_valid, error_message, target)
    """
    try:
        return True, None, ExportTarget.parse(value, kind)
    except MalformedInputError as e:
        return False, str(e), None


def validate_output_directory(
    output_path: str,
) -> Tuple[bool, Optional[str], Optional[Path]]:
    """
    Validate and create output directory if needed

    Returns:
        (is_valid, error_message, resolved_path)
    """
    try:
        path = Path(output_path).expanduser().resolve()
    except (OSError, RuntimeError) as e:
        return False, f"Invalid path: {e}", None

    if path.exists():
        if not path.is_dir():
            return False, f"Path exists but is not a directory: {path}", None
        if not os.access(path, os.W_OK):
            return False, f"No write permission for directory: {path}", None
        return True, None, path

    # Check if parent directory exists
    if not path.parent.exists():
        return False, f"Parent directory does not exist: {path.parent}", None

    if not os.access(path.parent, os.W_OK):
        return False, f"No write permission for directory: {path.parent}", None

    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        return False, f"Cannot create directory (permission denied): {path}", None
    except OSError as e:
        return False, f"Cannot create directory: {e}", None

    return True, None, path


def validate_concurrency_limit(max_concurrent: int) -> Tuple[bool, Optional[str]]:
    """
    Validate concurrency limit

    Returns:
        (is_valid, error_message)
    """
    if max_concurrent < 1:
        return False, "Maximum concurrent exports must be at least 1"

    if max_concurrent > 50:
        return False, "Maximum concurrent exports cannot exceed 50"

    return True, None


def show_validation_error(
    console: Console, error_message: str, suggestions: Optional[List[str]] = None
) -> None:
    """
    Display validation error with helpful suggestions
    """
    console.print(f"[red]Validation Error:[/red] {error_message}")

    if suggestions:
        console.print("\n[yellow]Suggestions:[/yellow]")
        for suggestion in suggestions:
            console.print(f"  • {suggestion}")


def get_validation_suggestions(error_type: str, value: str) -> List[str]:
    """
    Get validation suggestions based on error type
    """
    suggestions = []

    if error_type in ("user_id", "ticket_id"):
        command = "users" if error_type == "user_id" else "tickets"
        suggestions.extend(
            [
                f"Pass a positive numeric ID, e.g. '{command} 1'",
                f"Pass 'all' to export every record: '{command} all'",
            ]
        )

    elif error_type == "output_directory":
        suggestions.extend(
            [
                "Ensure the parent directory exists",
                "Check that you have write permissions",
                f"Try creating the directory manually: mkdir -p {value}",
            ]
        )

    elif error_type == "concurrency":
        suggestions.extend(
            [
                "Use a value between 1 and 50",
                "Higher values may trigger Zendesk rate limiting",
            ]
        )

    return suggestions
