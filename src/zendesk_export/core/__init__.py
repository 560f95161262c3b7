"""
Core export pipeline for zendesk-export.
"""

from .atomic_file_manager import AtomicFileManager
from .concurrent_processor import ConcurrentProcessor
from .config_manager import ConfigurationError, ConfigurationManager
from .content_fetcher import ContentFetcher, FetchResult
from .environment_manager import EnvironmentManager
from .export_orchestrator import ExportOrchestrator, export_session
from .resource_retriever import ResourceRetriever
from .storage_path_manager import StoragePathManager, resolve_storage_path
from .yaml_parser import YAMLConfigParser

__all__ = [
    # Configuration management
    "ConfigurationManager",
    "ConfigurationError",
    "YAMLConfigParser",
    "EnvironmentManager",
    # Storage
    "AtomicFileManager",
    "StoragePathManager",
    "resolve_storage_path",
    # Export pipeline
    "ConcurrentProcessor",
    "ContentFetcher",
    "FetchResult",
    "ResourceRetriever",
    "ExportOrchestrator",
    "export_session",
]
