"""
Configuration loading, validation and persistence.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.config_models import AppConfig
from .environment_manager import EnvironmentManager
from .yaml_parser import YAMLConfigParser

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIRNAME = ".zendesk-export"
DEFAULT_CONFIG_FILENAME = "config.yaml"
TOKEN_PLACEHOLDER = "${ZENDESK_TOKEN:}"


class ConfigurationError(Exception):
    """Base exception for configuration-related errors."""

    pass


class ConfigurationManager:
    """Loads ``AppConfig`` from a YAML file plus environment overrides."""

    def __init__(self) -> None:
        self.yaml_parser = YAMLConfigParser()
        self.env_manager = EnvironmentManager()
        self.current_config: Optional[AppConfig] = None
        self.config_path: Optional[Path] = None

    async def load_config(self, config_path: Optional[Path] = None) -> AppConfig:
        """
        Load configuration from file with environment overrides applied.

        A missing file is not an error; the defaults plus environment are used.
        """
        config_path = Path(config_path).expanduser() if config_path else self.get_default_config_path()
        self.config_path = config_path

        config_data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                config_data = await self.yaml_parser.load_yaml_config(config_path)
            except (ValueError, RuntimeError) as e:
                raise ConfigurationError(f"Configuration loading failed: {e}") from e
        else:
            logger.debug(f"No configuration file at {config_path}, using defaults")

        self._apply_environment_overrides(config_data)

        try:
            config = AppConfig(**config_data)
        except (ValidationError, TypeError) as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        self.current_config = config
        return config

    def require_credentials(self, config: Optional[AppConfig] = None) -> AppConfig:
        """
        Ensure domain, username and token are all set.

        Raises:
            ConfigurationError: naming the missing settings
        """
        config = config or self.current_config
        if config is None:
            raise ConfigurationError("No configuration loaded")

        zendesk = config.zendesk
        missing = [
            name
            for name in ("domain", "username", "token")
            if not getattr(zendesk, name)
        ]
        if missing:
            raise ConfigurationError(
                self.env_manager.missing_credentials_message(missing)
            )
        return config

    async def save_config(
        self, config: AppConfig, config_path: Optional[Path] = None
    ) -> Path:
        """Save configuration; the token is written as an env placeholder."""
        config_path = config_path or self.config_path or self.get_default_config_path()

        config_dict = config.model_dump()
        config_dict["zendesk"]["token"] = TOKEN_PLACEHOLDER

        try:
            await self.yaml_parser.save_yaml_config(config_dict, config_path)
        except RuntimeError as e:
            raise ConfigurationError(f"Configuration saving failed: {e}") from e

        return config_path

    async def generate_default_config(
        self, config_path: Optional[Path] = None, force: bool = False
    ) -> Optional[Path]:
        """
        Write a commented default configuration file.

        Returns:
            The written path, or None if a file exists and ``force`` is False
        """
        config_path = config_path or self.get_default_config_path()

        if config_path.exists() and not force:
            logger.warning(f"Configuration file already exists at {config_path}")
            return None

        config_dict = AppConfig().model_dump()
        self._apply_environment_overrides(config_dict)
        try:
            config = AppConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        written = await self.save_config(config, config_path)
        logger.info(f"Default configuration generated at {written}")
        return written

    def get_default_config_path(self) -> Path:
        env_path = os.getenv("ZENDESK_EXPORT_CONFIG_PATH")
        if env_path:
            return Path(env_path).expanduser()
        return Path.home() / DEFAULT_CONFIG_DIRNAME / DEFAULT_CONFIG_FILENAME

    def _apply_environment_overrides(self, config_data: Dict[str, Any]) -> None:
        credentials = self.env_manager.get_zendesk_credentials()
        if credentials:
            zendesk = config_data.get("zendesk") or {}
            zendesk.update(credentials)
            config_data["zendesk"] = zendesk

        overrides = self.env_manager.get_optional_config_overrides()

        if "ZENDESK_EXPORT_OUTPUT_PATH" in overrides:
            export = config_data.get("export") or {}
            export["output_path"] = overrides["ZENDESK_EXPORT_OUTPUT_PATH"]
            config_data["export"] = export

        if "ZENDESK_EXPORT_MAX_CONCURRENT" in overrides:
            export = config_data.get("export") or {}
            export["max_concurrent"] = overrides["ZENDESK_EXPORT_MAX_CONCURRENT"]
            config_data["export"] = export

        if "ZENDESK_EXPORT_LOG_LEVEL" in overrides:
            logging_section = config_data.get("logging") or {}
            logging_section["level"] = overrides["ZENDESK_EXPORT_LOG_LEVEL"].upper()
            config_data["logging"] = logging_section
