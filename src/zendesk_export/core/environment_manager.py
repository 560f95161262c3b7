"""
Environment variable management for credentials and setting overrides.
"""

import logging
import os
from typing import Dict

logger = logging.getLogger(__name__)

CREDENTIAL_ENV_VARS = {
    "ZENDESK_DOMAIN": "domain",
    "ZENDESK_USERNAME": "username",
    "ZENDESK_TOKEN": "token",
}

OVERRIDE_ENV_VARS = (
    "ZENDESK_EXPORT_CONFIG_PATH",
    "ZENDESK_EXPORT_OUTPUT_PATH",
    "ZENDESK_EXPORT_LOG_LEVEL",
    "ZENDESK_EXPORT_MAX_CONCURRENT",
)


class EnvironmentManager:
    """Manages environment variable integration."""

    def get_zendesk_credentials(self) -> Dict[str, str]:
        """Return the Zendesk connection values set in the environment."""
        credentials = {}
        for var_name, field_name in CREDENTIAL_ENV_VARS.items():
            value = os.getenv(var_name)
            if value:
                credentials[field_name] = value.strip()

        if credentials:
            logger.debug(
                f"Using Zendesk settings from environment: {sorted(credentials)}"
            )
        return credentials

    def get_optional_config_overrides(self) -> Dict[str, str]:
        """Get optional configuration overrides from environment variables."""
        optional_vars = {name: os.getenv(name) for name in OVERRIDE_ENV_VARS}
        return {k: v for k, v in optional_vars.items() if v is not None}

    def missing_credentials_message(self, missing: list) -> str:
        env_names = {field: var for var, field in CREDENTIAL_ENV_VARS.items()}
        hints = "\n".join(
            f"  export {env_names[field]}='your_{field}'" for field in missing
        )
        return (
            f"Missing Zendesk settings: {', '.join(missing)}\n"
            f"Set them in the configuration file or the environment.\n\n"
            f"Example:\n{hints}"
        )
