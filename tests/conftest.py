"""
Shared test fixtures: an in-memory Zendesk served through httpx.MockTransport.
"""

import base64
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from zendesk_export.integration.zendesk_client import ZendeskClient, ZendeskCredentials
from zendesk_export.models.config_models import (
    AppConfig,
    ExportConfig,
    LoggingConfig,
    ZendeskConfig,
)

DOMAIN = "acme.zendesk.com"
EMAIL = "agent@example.com"
TOKEN = "s3cr3t-token"

_USER_PATH = re.compile(r"^/api/v2/users/(\d+)\.json$")
_TICKET_PATH = re.compile(r"^/api/v2/tickets/(\d+)\.json$")
_COMMENTS_PATH = re.compile(r"^/api/v2/tickets/(\d+)/comments\.json$")


class BrokenStream(httpx.AsyncByteStream):
    """Body that delivers some bytes and then drops the connection."""

    def __init__(self, prefix: bytes):
        self.prefix = prefix

    async def __aiter__(self):
        yield self.prefix
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        pass


class FakeZendesk:
    """Minimal Zendesk v2 API with offset pagination and content downloads."""

    def __init__(self, domain: str = DOMAIN):
        self.domain = domain
        self.users: Dict[int, Dict[str, Any]] = {}
        self.tickets: Dict[int, Dict[str, Any]] = {}
        self.comments: Dict[int, List[Dict[str, Any]]] = {}
        self.files: Dict[str, bytes] = {}
        self.broken_files: Dict[str, bytes] = {}
        self.failures: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []
        expected = base64.b64encode(f"{EMAIL}/token:{TOKEN}".encode()).decode()
        self.expected_auth = f"Basic {expected}"

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def url(self, path: str) -> str:
        return f"https://{self.domain}{path}"

    def add_user(self, user_id: int, **fields: Any) -> Dict[str, Any]:
        user = {"id": user_id, "name": f"User {user_id}", **fields}
        self.users[user_id] = user
        return user

    def add_ticket(self, ticket_id: int, **fields: Any) -> Dict[str, Any]:
        ticket = {"id": ticket_id, "subject": f"Ticket {ticket_id}", **fields}
        self.tickets[ticket_id] = ticket
        self.comments.setdefault(ticket_id, [])
        return ticket

    def add_comment(
        self,
        ticket_id: int,
        comment_id: int,
        attachments: Optional[List[Dict[str, Any]]] = None,
        data: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> Dict[str, Any]:
        comment: Dict[str, Any] = {
            "id": comment_id,
            "body": f"Comment {comment_id}",
            "attachments": attachments or [],
            **fields,
        }
        if data is not None:
            comment["data"] = data
        self.comments.setdefault(ticket_id, []).append(comment)
        return comment

    def add_file(self, path: str, content: bytes) -> str:
        self.files[path] = content
        return self.url(path)

    def add_attachment(
        self, attachment_id: int, file_name: str, content: bytes
    ) -> Dict[str, Any]:
        url = self.add_file(f"/attachments/token/{attachment_id}/", content)
        return {"id": attachment_id, "file_name": file_name, "content_url": url}

    def fail(self, path: str, status_code: int) -> None:
        self.failures[path] = status_code

    def requests_to(self, path_prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.headers.get("authorization") != self.expected_auth:
            return httpx.Response(401, json={"error": "Couldn't authenticate you"})

        if path in self.failures:
            return httpx.Response(self.failures[path], json={"error": "failure"})

        if path in self.files:
            return httpx.Response(200, content=self.files[path])

        if path in self.broken_files:
            return httpx.Response(200, stream=BrokenStream(self.broken_files[path]))

        if path == "/api/v2/users.json":
            return self._page(request, "users", list(self.users.values()))

        if path == "/api/v2/tickets.json":
            return self._page(request, "tickets", list(self.tickets.values()))

        match = _USER_PATH.match(path)
        if match:
            return self._one("user", self.users.get(int(match.group(1))))

        match = _TICKET_PATH.match(path)
        if match:
            return self._one("ticket", self.tickets.get(int(match.group(1))))

        match = _COMMENTS_PATH.match(path)
        if match:
            ticket_id = int(match.group(1))
            if ticket_id not in self.tickets:
                return httpx.Response(404, json={"error": "RecordNotFound"})
            return self._page(request, "comments", self.comments.get(ticket_id, []))

        return httpx.Response(404, json={"error": "RecordNotFound"})

    @staticmethod
    def _one(key: str, record: Optional[Dict[str, Any]]) -> httpx.Response:
        if record is None:
            return httpx.Response(404, json={"error": "RecordNotFound"})
        return httpx.Response(200, json={key: record})

    def _page(
        self, request: httpx.Request, key: str, records: List[Dict[str, Any]]
    ) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        per_page = int(request.url.params.get("per_page", "100"))
        start = (page - 1) * per_page
        items = records[start : start + per_page]

        next_page = None
        if start + per_page < len(records):
            next_page = self.url(
                f"{request.url.path}?page={page + 1}&per_page={per_page}"
            )

        return httpx.Response(
            200, json={key: items, "next_page": next_page, "count": len(records)}
        )


@pytest.fixture
def fake_zendesk() -> FakeZendesk:
    return FakeZendesk()


@pytest.fixture
def credentials() -> ZendeskCredentials:
    return ZendeskCredentials(email=EMAIL, token=TOKEN)


@pytest_asyncio.fixture
async def zendesk_client(fake_zendesk: FakeZendesk, credentials: ZendeskCredentials):
    client = ZendeskClient(
        DOMAIN, credentials, page_size=2, transport=fake_zendesk.transport
    )
    yield client
    await client.aclose()


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    path = tmp_path / "export"
    path.mkdir()
    return path


@pytest.fixture
def app_config(export_dir: Path) -> AppConfig:
    return AppConfig(
        zendesk=ZendeskConfig(
            domain=DOMAIN, username=EMAIL, token=TOKEN, page_size=2
        ),
        export=ExportConfig(output_path=str(export_dir), max_concurrent=3),
        logging=LoggingConfig(level="DEBUG"),
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Remove ZENDESK_* variables and point the default config path into tmp."""
    for name in (
        "ZENDESK_DOMAIN",
        "ZENDESK_USERNAME",
        "ZENDESK_TOKEN",
        "ZENDESK_EXPORT_OUTPUT_PATH",
        "ZENDESK_EXPORT_LOG_LEVEL",
        "ZENDESK_EXPORT_MAX_CONCURRENT",
    ):
        monkeypatch.delenv(name, raising=False)
    config_path = tmp_path / "config" / "config.yaml"
    monkeypatch.setenv("ZENDESK_EXPORT_CONFIG_PATH", str(config_path))
    return config_path


@pytest.fixture
def zendesk_env(clean_env: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Credentials for the fake Zendesk supplied through the environment."""
    monkeypatch.setenv("ZENDESK_DOMAIN", DOMAIN)
    monkeypatch.setenv("ZENDESK_USERNAME", EMAIL)
    monkeypatch.setenv("ZENDESK_TOKEN", TOKEN)
    return clean_env
