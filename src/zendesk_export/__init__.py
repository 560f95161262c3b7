"""
zendesk-export - Zendesk Support data exporter

Mirrors users, tickets, comments, attachments and voice recordings from a
Zendesk account into a local directory tree, skipping anything already saved.
"""

__version__ = "1.0.0"

# Import main components for easy access
from .core.config_manager import ConfigurationError, ConfigurationManager
from .core.export_orchestrator import ExportOrchestrator, export_session
from .integration.zendesk_client import ZendeskClient, ZendeskCredentials
from .models.config_models import AppConfig

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "ConfigurationManager",
    "ExportOrchestrator",
    "export_session",
    "ZendeskClient",
    "ZendeskCredentials",
]
