"""
Zendesk API client with error classification and transparent pagination.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional, Tuple

import httpx

from .. import __version__
from ..models.entity_models import EntityKind
from ..models.export_models import (
    AuthError,
    InvalidResponseError,
    NotFoundError,
    RemoteAPIError,
    TransientError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZendeskCredentials:
    """API token credentials, shared by API calls and content downloads."""

    email: str
    token: str

    @classmethod
    def from_username(cls, username: str, token: str) -> "ZendeskCredentials":
        """Accept either ``agent@example.com`` or ``agent@example.com/token``."""
        email = username.strip()
        if email.endswith("/token"):
            email = email[: -len("/token")]
        return cls(email=email, token=token.strip())

    @property
    def basic_auth(self) -> Tuple[str, str]:
        return (f"{self.email}/token", self.token)

    def __repr__(self) -> str:
        return f"ZendeskCredentials(email='{self.email}', token='***')"


@dataclass
class RequestMetrics:
    """Counters for requests issued by a client."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0

    @property
    def success_rate(self) -> float:
        if self.request_count == 0:
            return 0.0
        return (self.success_count / self.request_count) * 100.0


class RateLimitHandler:
    """Detects rate limiting. Waiting and retrying is left to the caller."""

    def detect_rate_limit(self, response: httpx.Response) -> Tuple[bool, Optional[int]]:
        """
        Detect rate limiting and extract retry-after value.

        Returns:
            Tuple of (is_rate_limited, retry_after_seconds)
        """
        if response.status_code != 429:
            return False, None

        retry_header = response.headers.get("retry-after")
        if retry_header:
            try:
                return True, int(retry_header)
            except ValueError:
                return True, 60
        return True, 60


class APIErrorClassifier:
    """Maps HTTP responses and transport failures onto the export error taxonomy."""

    def __init__(self) -> None:
        self.rate_limit_handler = RateLimitHandler()

    def classify_response(
        self,
        response: httpx.Response,
        description: str,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[Any] = None,
    ) -> RemoteAPIError:
        status = response.status_code
        try:
            url: Optional[str] = str(response.request.url)
        except RuntimeError:
            url = None

        context: Dict[str, Any] = {
            "status_code": status,
            "url": url,
            "entity_kind": entity_kind,
            "entity_id": entity_id,
            "operation": description,
        }

        if status == 404:
            return NotFoundError(f"{description}: not found (404)", **context)

        if status in (401, 403):
            return AuthError(
                f"{description}: authentication failed ({status})", **context
            )

        is_rate_limited, retry_after = self.rate_limit_handler.detect_rate_limit(response)
        if is_rate_limited:
            return TransientError(
                f"{description}: rate limited, retry after {retry_after}s",
                retry_after=retry_after,
                **context,
            )

        if status >= 500:
            return TransientError(f"{description}: server error ({status})", **context)

        return RemoteAPIError(f"{description}: unexpected status {status}", **context)

    def classify_exception(
        self,
        error: Exception,
        description: str,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[Any] = None,
    ) -> RemoteAPIError:
        url = None
        if isinstance(error, httpx.RequestError):
            try:
                url = str(error.request.url)
            except RuntimeError:
                url = None
        return TransientError(
            f"{description}: {type(error).__name__}: {error}",
            url=url,
            entity_kind=entity_kind,
            entity_id=entity_id,
            operation=description,
        )


class ZendeskClient:
    """
    Async client for the Zendesk Support v2 API.

    Use as an async context manager, or call ``aclose()`` when done. One
    attempt is made per request; failures surface as typed ``RemoteAPIError``
    subclasses.
    """

    def __init__(
        self,
        domain: str,
        credentials: ZendeskCredentials,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Zendesk client.

        Args:
            domain: Zendesk host, e.g. ``acme.zendesk.com``
            credentials: API token credentials
            timeout: Request timeout in seconds
            page_size: Records requested per page for list endpoints
            transport: Optional httpx transport (used by tests)
        """
        if not domain:
            raise ValueError("Zendesk domain is required")

        self.domain = domain
        self.base_url = f"https://{domain}/api/v2"
        self.credentials = credentials
        self.page_size = page_size
        self.error_classifier = APIErrorClassifier()
        self.metrics = RequestMetrics()

        self._client = httpx.AsyncClient(
            auth=credentials.basic_auth,
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers={
                "User-Agent": f"zendesk-export/{__version__}",
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )

        logger.debug(f"ZendeskClient initialized with base URL: {self.base_url}")

    async def __aenter__(self) -> "ZendeskClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()
        logger.debug(
            f"ZendeskClient closed after {self.metrics.request_count} requests "
            f"({self.metrics.success_rate:.1f}% successful)"
        )

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _get_json(
        self,
        url: str,
        description: str,
        params: Optional[Dict[str, Any]] = None,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[Any] = None,
    ) -> Dict[str, Any]:
        self.metrics.request_count += 1

        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            self.metrics.error_count += 1
            raise self.error_classifier.classify_exception(
                e, description, entity_kind, entity_id
            ) from e

        if response.status_code != 200:
            self.metrics.error_count += 1
            raise self.error_classifier.classify_response(
                response, description, entity_kind, entity_id
            )

        try:
            data = response.json()
        except ValueError as e:
            self.metrics.error_count += 1
            raise InvalidResponseError(
                f"{description}: response is not valid JSON",
                status_code=response.status_code,
                url=url,
                entity_kind=entity_kind,
                entity_id=entity_id,
                operation=description,
            ) from e

        if not isinstance(data, dict):
            self.metrics.error_count += 1
            raise InvalidResponseError(
                f"{description}: expected a JSON object",
                status_code=response.status_code,
                url=url,
                entity_kind=entity_kind,
                entity_id=entity_id,
                operation=description,
            )

        self.metrics.success_count += 1
        return data

    async def _get_one(
        self, endpoint: str, key: str, kind: EntityKind, entity_id: int
    ) -> Dict[str, Any]:
        description = f"Error getting {kind.value} {entity_id}"
        data = await self._get_json(
            self._build_url(endpoint), description, entity_kind=kind, entity_id=entity_id
        )
        if key not in data:
            raise InvalidResponseError(
                f"{description}: response has no '{key}'",
                entity_kind=kind,
                entity_id=entity_id,
                operation=description,
            )
        return data[key]

    async def _paginate(
        self,
        endpoint: str,
        key: str,
        description: str,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[Any] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield records from every page of a list endpoint."""
        url: Optional[str] = self._build_url(endpoint)
        params: Optional[Dict[str, Any]] = {"per_page": self.page_size}
        seen_urls = set()
        page = 0

        while url:
            data = await self._get_json(url, description, params, entity_kind, entity_id)
            seen_urls.add(url)
            page += 1

            items = data.get(key)
            if not isinstance(items, list):
                raise InvalidResponseError(
                    f"{description}: response has no '{key}' list",
                    url=url,
                    entity_kind=entity_kind,
                    entity_id=entity_id,
                    operation=description,
                )

            logger.debug(f"Fetched page {page} of {key} ({len(items)} records)")
            for item in items:
                yield item

            url = self._next_page_url(data)
            # next-page URLs already carry the query string
            params = None
            if url in seen_urls:
                logger.warning(f"Pagination for {key} returned a repeated page, stopping")
                break

    @staticmethod
    def _next_page_url(data: Dict[str, Any]) -> Optional[str]:
        next_page = data.get("next_page")
        if next_page:
            return str(next_page)

        meta = data.get("meta") or {}
        links = data.get("links") or {}
        if meta.get("has_more") and links.get("next"):
            return str(links["next"])

        return None

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._get_one(f"users/{user_id}.json", "user", EntityKind.USER, user_id)

    def list_users(self) -> AsyncIterator[Dict[str, Any]]:
        return self._paginate(
            "users.json", "users", "Error getting all users", EntityKind.USER
        )

    async def get_ticket(self, ticket_id: int) -> Dict[str, Any]:
        return await self._get_one(
            f"tickets/{ticket_id}.json", "ticket", EntityKind.TICKET, ticket_id
        )

    def list_tickets(self) -> AsyncIterator[Dict[str, Any]]:
        return self._paginate(
            "tickets.json", "tickets", "Error getting all tickets", EntityKind.TICKET
        )

    def get_comments(self, ticket_id: int) -> AsyncIterator[Dict[str, Any]]:
        return self._paginate(
            f"tickets/{ticket_id}/comments.json",
            "comments",
            f"Error getting comments for ticket {ticket_id}",
            EntityKind.TICKET,
            ticket_id,
        )

    @asynccontextmanager
    async def stream(
        self, uri: str, description: Optional[str] = None
    ) -> AsyncGenerator[httpx.Response, None]:
        """
        Open a streaming GET for attachment or recording content.

        Credentials are sent with the request; redirects to the content host
        are followed.
        """
        description = description or f"Error downloading <{uri}>"
        self.metrics.request_count += 1

        try:
            async with self._client.stream(
                "GET", uri, auth=self.credentials.basic_auth
            ) as response:
                if response.status_code != 200:
                    self.metrics.error_count += 1
                    raise self.error_classifier.classify_response(response, description)
                yield response
                self.metrics.success_count += 1
        except httpx.HTTPError as e:
            self.metrics.error_count += 1
            raise self.error_classifier.classify_exception(e, description) from e
