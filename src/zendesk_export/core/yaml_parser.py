"""
YAML configuration parser with environment variable substitution.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

# Keys of the flat config.json used by earlier versions of the tool.
LEGACY_ZENDESK_KEYS = ("domain", "username", "token")

_CONFIG_COMMENTS: Dict[str, Dict[str, str]] = {
    "zendesk": {
        "_section_comment": "Zendesk API connection",
        "domain": "Zendesk domain, e.g. acme.zendesk.com (a bare 'acme' also works)",
        "username": "Agent email address used with the API token",
        "token": "API token (set via ZENDESK_TOKEN env var)",
        "timeout_seconds": "Request timeout in seconds",
        "page_size": "Records requested per page when listing (1-100)",
    },
    "export": {
        "_section_comment": "Export pipeline",
        "output_path": "Directory that receives the data/ tree",
        "max_concurrent": "Maximum users or tickets exported at once (1-50)",
        "max_concurrent_downloads": "Maximum attachment or recording downloads at once",
        "task_timeout": "Per user/ticket timeout in seconds (empty for none)",
        "chunk_size": "Download chunk size in bytes",
    },
    "logging": {
        "_section_comment": "Logging",
        "level": "Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        "file_path": "Log file path (leave empty for console only)",
    },
}


class YAMLConfigParser:
    """YAML configuration parser with environment variable substitution."""

    def __init__(self) -> None:
        self.env_var_pattern = re.compile(r"\$\{([^}]+)\}")

    async def load_yaml_config(self, config_path: Path) -> Dict[str, Any]:
        """
        Load and parse a configuration file with environment substitution.

        JSON is accepted as well, so a flat ``config.json`` with ``domain``,
        ``username`` and ``token`` keys is folded into the ``zendesk`` section.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise RuntimeError(f"Failed to read configuration file: {e}") from e

        substituted_content = self._substitute_environment_variables(content)

        try:
            config_data = yaml.safe_load(substituted_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a YAML dictionary")

        logger.debug(f"Loaded configuration from {config_path}")
        return self._fold_legacy_keys(config_data)

    async def save_yaml_config(
        self, config_data: Dict[str, Any], config_path: Path
    ) -> None:
        """Save configuration data to a commented YAML file atomically."""
        temp_path = config_path.with_suffix(".tmp")

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            yaml_content = self._generate_commented_yaml(config_data)

            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(yaml_content)

            temp_path.replace(config_path)
            logger.info(f"Saved configuration to {config_path}")

        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise RuntimeError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _fold_legacy_keys(config_data: Dict[str, Any]) -> Dict[str, Any]:
        legacy = {key: config_data.pop(key) for key in LEGACY_ZENDESK_KEYS if key in config_data}
        if legacy:
            zendesk = config_data.setdefault("zendesk", {}) or {}
            for key, value in legacy.items():
                zendesk.setdefault(key, value)
            config_data["zendesk"] = zendesk
            logger.debug(f"Folded legacy keys into zendesk section: {sorted(legacy)}")
        return config_data

    def _substitute_environment_variables(self, content: str) -> str:
        """Substitute ``${VAR}`` and ``${VAR:default}`` outside comment lines."""
        processed_lines = []

        for line in content.split("\n"):
            if line.strip().startswith("#"):
                processed_lines.append(line)
                continue

            def replace_env_var(match: Any) -> str:
                var_name = match.group(1)

                if ":" in var_name:
                    var_name, default_value = var_name.split(":", 1)
                    return os.getenv(var_name, default_value)

                env_value = os.getenv(var_name)
                if env_value is None:
                    raise ValueError(f"Environment variable '{var_name}' is not set")
                return env_value

            try:
                processed_lines.append(self.env_var_pattern.sub(replace_env_var, line))
            except ValueError as e:
                raise ValueError(
                    f"Environment variable substitution failed on line '{line}': {e}"
                ) from e

        return "\n".join(processed_lines)

    def _generate_commented_yaml(self, config_data: Dict[str, Any]) -> str:
        lines = [
            "# zendesk-export configuration",
            "# Generated automatically - modify as needed",
            "# Environment variables can be substituted using ${VAR_NAME} syntax",
            "",
        ]

        for section_name, section_data in config_data.items():
            section_comments = _CONFIG_COMMENTS.get(section_name, {})
            if not isinstance(section_data, dict):
                lines.append(f"{section_name}: {self._format_value(section_data)}")
                lines.append("")
                continue

            section_comment = section_comments.get(
                "_section_comment", f"{section_name} configuration"
            )
            lines.append(f"# {section_comment}")
            lines.append(f"{section_name}:")

            for key, value in section_data.items():
                comment = section_comments.get(key)
                if comment:
                    lines.append(f"  # {comment}")
                lines.append(f"  {key}: {self._format_value(value)}")

            lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _format_value(value: Any) -> str:
        if isinstance(value, str) and value.startswith("${"):
            return f'"{value}"'
        yaml_value = yaml.safe_dump(value, default_flow_style=True).strip()
        if yaml_value.endswith("..."):
            yaml_value = yaml_value[:-3].strip()
        return yaml_value
