"""
Configuration management commands
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console

from ...core.config_manager import ConfigurationError, ConfigurationManager
from ...core.environment_manager import CREDENTIAL_ENV_VARS
from ..ui.display import create_config_table, create_error_display
from ..utils.async_runner import async_command

_ENV_BY_SETTING = {f"zendesk.{field}": var for var, field in CREDENTIAL_ENV_VARS.items()}
_ENV_BY_SETTING.update(
    {
        "export.output_path": "ZENDESK_EXPORT_OUTPUT_PATH",
        "export.max_concurrent": "ZENDESK_EXPORT_MAX_CONCURRENT",
        "logging.level": "ZENDESK_EXPORT_LOG_LEVEL",
    }
)


@click.group()
def config() -> None:
    """
    Configuration management commands.

    Settings come from the configuration file (default
    ~/.zendesk-export/config.yaml) and ZENDESK_* environment variables, which
    take precedence.
    """
    pass


@config.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@click.pass_context
@async_command
async def init(ctx: click.Context, force: bool) -> None:
    """
    Write a commented configuration file with default values.

    The API token is not stored; the file refers to ZENDESK_TOKEN instead.
    """
    console: Console = ctx.obj["console"]
    config_manager = ConfigurationManager()
    config_path: Optional[Path] = ctx.obj.get("config_path")

    try:
        written = await config_manager.generate_default_config(config_path, force=force)
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    if written is None:
        existing = config_path or config_manager.get_default_config_path()
        console.print(
            f"[yellow]Configuration file already exists: {existing}[/yellow]\n"
            "Use --force to overwrite it."
        )
        ctx.exit(1)

    console.print(f"[green]✓ Configuration written to {written}[/green]")
    console.print("\nNext steps:")
    console.print("1. Set your Zendesk domain and agent email in the file")
    console.print("2. Provide the API token through the environment:")
    console.print("   export ZENDESK_TOKEN='your_api_token'")


@config.command()
@click.pass_context
@async_command
async def show(ctx: click.Context) -> None:
    """
    Display the effective configuration with sources.

    Secrets are masked.
    """
    console: Console = ctx.obj["console"]
    config_manager = ConfigurationManager()

    try:
        settings = await config_manager.load_config(ctx.obj.get("config_path"))
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    config_data: Dict[str, Any] = {}
    for section_name, section in settings.model_dump().items():
        if not isinstance(section, dict):
            continue
        for key, value in section.items():
            setting = f"{section_name}.{key}"
            config_data[setting] = {"value": value, "source": _get_value_source(setting)}

    console.print(create_config_table(config_data, "zendesk-export Configuration"))

    config_file_path = config_manager.config_path
    console.print(f"\n[dim]Configuration file: {config_file_path}[/dim]")
    if config_file_path and not config_file_path.exists():
        console.print(
            "[yellow]Configuration file does not exist. "
            "Run 'zendesk-export config init' to create one.[/yellow]"
        )


def _get_value_source(setting: str) -> str:
    env_var = _ENV_BY_SETTING.get(setting)
    if env_var and os.getenv(env_var):
        return f"environment ({env_var})"
    return "config file / default"
