"""
Pydantic configuration models.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ZendeskConfig(BaseModel):
    """Connection settings for the Zendesk API."""

    domain: str = Field(default="", description="Zendesk domain, e.g. acme.zendesk.com")
    username: str = Field(default="", description="Agent email (optionally suffixed with /token)")
    token: str = Field(default="", description="Zendesk API token", repr=False)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=600.0)
    page_size: int = Field(default=100, ge=1, le=100)

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix) :]
        v = v.split("/", 1)[0]
        if v and "." not in v:
            v = f"{v}.zendesk.com"
        return v

    @field_validator("username", "token")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()

    @property
    def is_complete(self) -> bool:
        return bool(self.domain and self.username and self.token)


class ExportConfig(BaseModel):
    """Export pipeline settings."""

    output_path: str = Field(default=".", description="Directory that receives data/")
    max_concurrent: int = Field(default=5, ge=1, le=50)
    max_concurrent_downloads: int = Field(default=4, ge=1, le=50)
    task_timeout: Optional[float] = Field(default=None, gt=0)
    chunk_size: int = Field(default=64 * 1024, ge=1024)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO")
    file_path: Optional[str] = Field(default=None)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration."""

    zendesk: ZendeskConfig = Field(default_factory=ZendeskConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_version: str = Field(default="1.0")
