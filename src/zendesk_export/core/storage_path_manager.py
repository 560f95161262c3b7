"""
Canonical on-disk layout for exported entities.
"""

import logging
import re
from pathlib import Path
from typing import Any, Union

from ..models.entity_models import EntityKind

logger = logging.getLogger(__name__)

DATA_DIRNAME = "data"

_ID_COUNTS = {
    EntityKind.USER: 1,
    EntityKind.TICKET: 1,
    EntityKind.COMMENT: 2,
    EntityKind.ATTACHMENT: 4,
    EntityKind.RECORDING: 3,
}

_UNSAFE_SEGMENT_CHARS = re.compile(r"[/\\\x00]")


def sanitize_segment(name: Any, placeholder: str = "unnamed") -> str:
    """
    Make a remote-controlled name safe to use as a single path segment.

    Only separators and NUL are replaced; ordinary file names pass through
    unchanged so paths stay identical across runs and tool versions.
    """
    sanitized = _UNSAFE_SEGMENT_CHARS.sub("_", str(name))
    if sanitized in ("", ".", ".."):
        return placeholder
    return sanitized


def resolve_storage_path(kind: EntityKind, *ids: Any) -> Path:
    """
    Map an entity reference to its relative storage path.

    Args:
        kind: Entity kind
        ids: Ancestor ids followed by the entity's own id; for attachments the
            file name is the final element.

    Returns:
        Relative path under ``data/``

    Raises:
        ValueError: if the number of ids does not match ``kind``
    """
    expected = _ID_COUNTS.get(kind)
    if expected is None or len(ids) != expected:
        raise ValueError(
            f"{kind.value} paths take {expected} identifiers, got {len(ids)}"
        )

    if kind == EntityKind.USER:
        (user_id,) = ids
        return Path(DATA_DIRNAME, "users", f"{user_id}.json")

    ticket_dir = Path(DATA_DIRNAME, "tickets", str(ids[0]))

    if kind == EntityKind.TICKET:
        return ticket_dir / "ticket.json"

    comment_dir = ticket_dir / "comments" / str(ids[1])

    if kind == EntityKind.COMMENT:
        return comment_dir / "comment.json"

    if kind == EntityKind.ATTACHMENT:
        _, _, attachment_id, file_name = ids
        return (
            comment_dir
            / "attachments"
            / str(attachment_id)
            / sanitize_segment(file_name, placeholder="attachment")
        )

    call_id = sanitize_segment(ids[2], placeholder="recording")
    return comment_dir / "recordings" / f"{call_id}.mp3"


class StoragePathManager:
    """Resolves canonical paths relative to an export base directory."""

    def __init__(self, base_path: Union[str, Path] = "."):
        self.base_path = Path(base_path).expanduser().resolve()
        logger.debug(f"Initialized StoragePathManager with base path: {self.base_path}")

    def user_path(self, user_id: int) -> Path:
        return resolve_storage_path(EntityKind.USER, user_id)

    def ticket_path(self, ticket_id: int) -> Path:
        return resolve_storage_path(EntityKind.TICKET, ticket_id)

    def comment_path(self, ticket_id: int, comment_id: int) -> Path:
        return resolve_storage_path(EntityKind.COMMENT, ticket_id, comment_id)

    def attachment_path(
        self, ticket_id: int, comment_id: int, attachment_id: int, file_name: str
    ) -> Path:
        return resolve_storage_path(
            EntityKind.ATTACHMENT, ticket_id, comment_id, attachment_id, file_name
        )

    def recording_path(self, ticket_id: int, comment_id: int, call_id: str) -> Path:
        return resolve_storage_path(EntityKind.RECORDING, ticket_id, comment_id, call_id)

    def __str__(self) -> str:
        return f"StoragePathManager(base_path='{self.base_path}')"

    def __repr__(self) -> str:
        return f"StoragePathManager(base_path=Path('{self.base_path}'))"
