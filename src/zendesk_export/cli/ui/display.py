"""
Rich display components for export results and configuration
"""

from typing import Any, Dict, List, Optional

from rich.console import Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ...models.export_models import ExportSummary

SENSITIVE_KEYS = ["password", "secret", "token"]


def create_config_table(
    config_data: Dict[str, Any], title: str = "Configuration"
) -> Table:
    """
    Create a Rich table for configuration display
    """
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Source", style="yellow")

    for key, value_info in config_data.items():
        if isinstance(value_info, dict):
            value = value_info.get("value")
            source = value_info.get("source", "unknown")
        else:
            value = value_info
            source = "config file"

        if value is None or value == "":
            display_value = "not set"
        elif any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            display_value = "***masked***"
        else:
            display_value = str(value)

        table.add_row(key, display_value, source)

    return table


def create_summary_panel(summary: ExportSummary) -> Panel:
    """
    Create a panel describing a finished export
    """
    what = (
        f"all {summary.kind.value}s"
        if summary.target.is_all
        else f"{summary.kind.value} {summary.target}"
    )

    table = Table(show_header=True, header_style="bold blue", box=None)
    table.add_column("Kind", style="cyan")
    table.add_column("Written", justify="right", style="green")
    table.add_column("Already present", justify="right")
    table.add_column("Failed", justify="right", style="red")

    for kind, counts in summary.counts_by_kind().items():
        table.add_row(
            kind, str(counts["written"]), str(counts["skipped"]), str(counts["failed"])
        )

    lines: List[Any] = [table]
    if summary.listing_error is not None:
        lines.append(f"\n[red]Listing aborted: {escape(str(summary.listing_error))}[/red]")

    for job in summary.failed_jobs[:10]:
        lines.append(f"[red]✗ {job.label}: {escape(str(job.error))}[/red]")
    if len(summary.failed_jobs) > 10:
        lines.append(f"[red]... and {len(summary.failed_jobs) - 10} more failures[/red]")

    duration = format_duration(summary.duration_seconds or 0.0)
    if summary.success:
        title = f"[green]✓ Exported {what} in {duration}[/green]"
        border_style = "green"
    else:
        title = f"[red]✗ Export of {what} finished with errors in {duration}[/red]"
        border_style = "red"

    return Panel(Group(*lines), title=title, border_style=border_style, padding=(0, 1))


def create_error_display(error: Exception, context: Optional[str] = None) -> Panel:
    """
    Create formatted error display with suggestions
    """
    error_lines = []

    if context:
        error_lines.append(f"Context: {context}")
        error_lines.append("")

    error_lines.append(f"Error: {escape(str(error))}")
    error_lines.append("")

    error_type = type(error).__name__.lower()
    message = str(error).lower()
    suggestions = []

    if "auth" in error_type:
        suggestions.extend(
            [
                "Check ZENDESK_USERNAME and ZENDESK_TOKEN",
                "Make sure token access is enabled in the Zendesk admin center",
            ]
        )

    elif "config" in error_type or "config" in message:
        suggestions.extend(
            [
                "Create a configuration file: zendesk-export config init",
                "Check configuration: zendesk-export config show",
                "Verify environment variables",
            ]
        )

    elif "permission" in message or "storage" in error_type:
        suggestions.extend(
            [
                "Check write permissions for the output directory",
                "Try with a different output directory",
            ]
        )

    elif "transient" in error_type or "timeout" in message:
        suggestions.extend(
            [
                "Check network connectivity",
                "Try with reduced concurrency: --max-concurrent 2",
                "Run the export again; saved records are skipped",
            ]
        )

    else:
        suggestions.extend(
            [
                "Run with --verbose for detailed error information",
                "Verify configuration: zendesk-export config show",
            ]
        )

    error_lines.append("Suggestions:")
    for suggestion in suggestions:
        error_lines.append(f"  • {suggestion}")

    return Panel(
        "\n".join(error_lines),
        title="[red]Error[/red]",
        border_style="red",
        padding=(1, 2),
    )


def format_duration(seconds: float) -> str:
    """Format duration in a human-readable way"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.0f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
