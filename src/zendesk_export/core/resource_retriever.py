"""
Adapter from the Zendesk client to typed entity records.
"""

import logging
from typing import Any, AsyncIterator, Optional

from ..integration.zendesk_client import ZendeskClient
from ..models.entity_models import (
    CommentRecord,
    EntityKind,
    EntityRecord,
    RecordParseError,
    parse_comment,
    parse_entity,
)
from ..models.export_models import InvalidResponseError

logger = logging.getLogger(__name__)


class ResourceRetriever:
    """Retrieves users, tickets and comments as typed records. No retries."""

    def __init__(self, client: ZendeskClient):
        self.client = client

    async def get_one(self, kind: EntityKind, entity_id: int) -> EntityRecord:
        """
        Retrieve a single user or ticket.

        Raises:
            NotFoundError, AuthError, TransientError, InvalidResponseError
        """
        if kind == EntityKind.USER:
            data = await self.client.get_user(entity_id)
        elif kind == EntityKind.TICKET:
            data = await self.client.get_ticket(entity_id)
        else:
            raise ValueError(f"Cannot retrieve {kind.value} records individually")

        return self._parse(kind, data, entity_id=entity_id)

    async def list_all(self, kind: EntityKind) -> AsyncIterator[EntityRecord]:
        """
        Lazily yield every user or ticket.

        Pagination is handled by the client. A failure part-way through aborts
        the listing.
        """
        if kind == EntityKind.USER:
            source = self.client.list_users()
        elif kind == EntityKind.TICKET:
            source = self.client.list_tickets()
        else:
            raise ValueError(f"Cannot list {kind.value} records")

        count = 0
        async for data in source:
            count += 1
            yield self._parse(kind, data)

        logger.debug(f"Listed {count} {kind.value} records")

    async def iter_comments(self, ticket_id: int) -> AsyncIterator[CommentRecord]:
        """Yield the comments of ``ticket_id`` in API order."""
        async for data in self.client.get_comments(ticket_id):
            try:
                comment = parse_comment(data, ticket_id)
            except RecordParseError as e:
                raise InvalidResponseError(
                    f"Error getting comments for ticket {ticket_id}: {e}",
                    entity_kind=EntityKind.TICKET,
                    entity_id=ticket_id,
                    operation="iter_comments",
                ) from e
            yield comment

    @staticmethod
    def _parse(
        kind: EntityKind, data: Any, entity_id: Optional[int] = None
    ) -> EntityRecord:
        try:
            return parse_entity(kind, data)
        except RecordParseError as e:
            label = f"{kind.value} {entity_id}" if entity_id else kind.value
            raise InvalidResponseError(
                f"Error getting {label}: {e}",
                entity_kind=kind,
                entity_id=entity_id,
                operation="parse",
            ) from e
