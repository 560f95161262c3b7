"""
Data models for zendesk-export.
"""

from .config_models import AppConfig, ExportConfig, LoggingConfig, ZendeskConfig
from .entity_models import (
    Attachment,
    CommentRecord,
    EntityKind,
    EntityRecord,
    Recording,
    RecordParseError,
    TicketRecord,
    UserRecord,
    parse_entity,
)
from .export_models import (
    AuthError,
    ExportError,
    ExportSummary,
    ExportTarget,
    InvalidResponseError,
    JobResult,
    JobState,
    MalformedInputError,
    NotFoundError,
    RemoteAPIError,
    SerializationError,
    StorageFault,
    TaskTimeoutError,
    TransientError,
)

__all__ = [
    # Configuration
    "AppConfig",
    "ExportConfig",
    "LoggingConfig",
    "ZendeskConfig",
    # Entities
    "Attachment",
    "CommentRecord",
    "EntityKind",
    "EntityRecord",
    "Recording",
    "RecordParseError",
    "TicketRecord",
    "UserRecord",
    "parse_entity",
    # Jobs and errors
    "AuthError",
    "ExportError",
    "ExportSummary",
    "ExportTarget",
    "InvalidResponseError",
    "JobResult",
    "JobState",
    "MalformedInputError",
    "NotFoundError",
    "RemoteAPIError",
    "SerializationError",
    "StorageFault",
    "TaskTimeoutError",
    "TransientError",
]
