"""
Typed views over the records returned by the Zendesk API.

Each record keeps the complete document in ``raw`` (field order preserved) so
nothing the API returns is lost when it is written to disk; the typed fields
are only what the export pipeline needs to navigate the hierarchy.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    """Kinds of exported entities."""

    USER = "user"
    TICKET = "ticket"
    COMMENT = "comment"
    ATTACHMENT = "attachment"
    RECORDING = "recording"


class RecordParseError(ValueError):
    """Raised when an API document lacks the fields the pipeline relies on."""


def parse_external_id(value: Any) -> int:
    """Return ``value`` as a positive integer id or raise ``RecordParseError``."""
    if isinstance(value, bool):
        raise RecordParseError(f"Invalid id: {value!r}")

    if isinstance(value, int):
        external_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        external_id = int(value.strip())
    else:
        raise RecordParseError(f"Invalid id: {value!r}")

    if external_id <= 0:
        raise RecordParseError(f"Id must be positive, got {external_id}")

    return external_id


@dataclass(frozen=True)
class Attachment:
    """Attachment descriptor embedded in a comment."""

    id: int
    content_url: str
    file_name: str

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Attachment":
        attachment_id = parse_external_id(data.get("id"))

        content_url = data.get("content_url")
        if not content_url or not isinstance(content_url, str):
            raise RecordParseError(f"Attachment {attachment_id} has no content_url")

        file_name = data.get("file_name") or f"attachment-{attachment_id}"
        return cls(id=attachment_id, content_url=content_url, file_name=str(file_name))


@dataclass(frozen=True)
class Recording:
    """Voice recording referenced by a call comment."""

    call_id: str
    recording_url: str


@dataclass
class UserRecord:
    id: int
    raw: Dict[str, Any] = field(repr=False)

    kind = EntityKind.USER


@dataclass
class TicketRecord:
    id: int
    raw: Dict[str, Any] = field(repr=False)

    kind = EntityKind.TICKET


@dataclass
class CommentRecord:
    id: int
    ticket_id: int
    raw: Dict[str, Any] = field(repr=False)
    attachments: List[Attachment] = field(default_factory=list)
    recording: Optional[Recording] = None

    kind = EntityKind.COMMENT


EntityRecord = Union[UserRecord, TicketRecord, CommentRecord]


def _require_mapping(data: Any, kind: EntityKind) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise RecordParseError(
            f"Expected a {kind.value} object, got {type(data).__name__}"
        )
    return data


def parse_user(data: Any) -> UserRecord:
    raw = _require_mapping(data, EntityKind.USER)
    return UserRecord(id=parse_external_id(raw.get("id")), raw=raw)


def parse_ticket(data: Any) -> TicketRecord:
    raw = _require_mapping(data, EntityKind.TICKET)
    return TicketRecord(id=parse_external_id(raw.get("id")), raw=raw)


def parse_comment(data: Any, ticket_id: int) -> CommentRecord:
    """
    Parse a comment and derive its attachments and optional recording.

    Malformed attachment descriptors are dropped with a warning rather than
    failing the comment, so the comment document itself is still exported.
    """
    raw = _require_mapping(data, EntityKind.COMMENT)
    comment_id = parse_external_id(raw.get("id"))

    attachments: List[Attachment] = []
    for item in raw.get("attachments") or []:
        try:
            attachments.append(Attachment.from_api(_require_mapping(item, EntityKind.ATTACHMENT)))
        except RecordParseError as e:
            logger.warning(
                f"Ignoring malformed attachment on comment {comment_id} "
                f"(ticket {ticket_id}): {e}"
            )

    return CommentRecord(
        id=comment_id,
        ticket_id=ticket_id,
        raw=raw,
        attachments=attachments,
        recording=_parse_recording(raw, comment_id),
    )


def _parse_recording(raw: Mapping[str, Any], comment_id: int) -> Optional[Recording]:
    data = raw.get("data")
    if not isinstance(data, dict):
        return None

    recording_url = data.get("recording_url")
    if not recording_url or not isinstance(recording_url, str):
        return None

    call_id = data.get("call_id")
    if call_id is None or str(call_id).strip() == "":
        logger.warning(
            f"Comment {comment_id} has a recording but no call_id, keying it by comment id"
        )
        call_id = comment_id

    return Recording(call_id=str(call_id), recording_url=recording_url)


def parse_entity(
    kind: EntityKind, data: Any, ticket_id: Optional[int] = None
) -> EntityRecord:
    """Dispatch to the parser for ``kind``."""
    if kind == EntityKind.USER:
        return parse_user(data)
    if kind == EntityKind.TICKET:
        return parse_ticket(data)
    if kind == EntityKind.COMMENT:
        if ticket_id is None:
            raise ValueError("Comments can only be parsed with their ticket id")
        return parse_comment(data, ticket_id)
    raise ValueError(f"{kind.value} is not a retrievable entity kind")
