"""Shared test fixtures."""

import json
import tempfile
from pathlib import Path

import httpx
import pytest

from mailgate.config import ConfirmConfig, JmapConfig

SESSION_URL = "https://jmap.example.com/jmap/session"
API_URL = "https://jmap.example.com/jmap/api/"
DOWNLOAD_URL = "https://jmap.example.com/jmap/download/{accountId}/{blobId}/{name}?type={type}"
ACCOUNT_ID = "u123"

SESSION = {
    "capabilities": {
        "urn:ietf:params:jmap:core": {"maxCallsInRequest": 16},
        "urn:ietf:params:jmap:mail": {},
        "urn:ietf:params:jmap:submission": {},
        "https://www.fastmail.com/dev/maskedemail": {},
    },
    "accounts": {
        ACCOUNT_ID: {
            "name": "me@example.com",
            "isPersonal": True,
            "isReadOnly": False,
            "accountCapabilities": {},
        },
    },
    "primaryAccounts": {
        "urn:ietf:params:jmap:mail": ACCOUNT_ID,
        "urn:ietf:params:jmap:submission": ACCOUNT_ID,
        "https://www.fastmail.com/dev/maskedemail": ACCOUNT_ID,
    },
    "username": "me@example.com",
    "apiUrl": API_URL,
    "downloadUrl": DOWNLOAD_URL,
    "uploadUrl": "https://jmap.example.com/jmap/upload/{accountId}/",
    "eventSourceUrl": "https://jmap.example.com/jmap/event/",
    "state": "s0",
}

MAILBOXES = [
    {"id": "mb-inbox", "name": "Inbox", "role": "inbox", "totalEmails": 10, "unreadEmails": 2},
    {"id": "mb-archive", "name": "Archive", "role": "archive", "totalEmails": 100, "unreadEmails": 0},
    {"id": "mb-drafts", "name": "Drafts", "role": "drafts", "totalEmails": 1, "unreadEmails": 0},
    {"id": "mb-sent", "name": "Sent Items", "role": "sent", "totalEmails": 50, "unreadEmails": 0},
    {"id": "mb-junk", "name": "Junk Mail", "role": "junk", "totalEmails": 3, "unreadEmails": 3},
    {"id": "mb-trash", "name": "Trash", "role": "trash", "totalEmails": 0, "unreadEmails": 0},
    {"id": "mb-receipts", "name": "Receipts", "role": None, "parentId": "mb-archive", "totalEmails": 7, "unreadEmails": 1},
]

IDENTITIES = [
    {"id": "id-1", "name": "Me", "email": "me@example.com", "mayDelete": False},
    {"id": "id-2", "name": "Alias", "email": "alias@example.com", "mayDelete": True},
]

ORIGINAL_EMAIL = {
    "id": "e1",
    "threadId": "t1",
    "blobId": "b-e1",
    "mailboxIds": {"mb-inbox": True},
    "keywords": {"$seen": True},
    "receivedAt": "2024-03-01T09:30:00Z",
    "sentAt": "2024-03-01T09:29:00Z",
    "messageId": ["C"],
    "references": ["A", "B"],
    "from": [{"name": "Alice", "email": "alice@example.com"}],
    "to": [{"name": "Me", "email": "me@example.com"}],
    "replyTo": None,
    "subject": "Quarterly report",
    "hasAttachment": True,
    "preview": "Here is the report",
    "textBody": [{"partId": "1", "blobId": "b-part1", "type": "text/plain", "size": 18}],
    "htmlBody": [{"partId": "2", "blobId": "b-part2", "type": "text/html", "size": 40}],
    "bodyValues": {
        "1": {"value": "Here is the report", "isEncodingProblem": False, "isTruncated": False},
        "2": {"value": "<p>Here is the <b>report</b></p>", "isEncodingProblem": False, "isTruncated": False},
    },
    "attachments": [
        {"partId": "3", "blobId": "b-pdf", "name": "report.pdf", "type": "application/pdf", "size": 2048},
        {"partId": "4", "blobId": "b-csv", "name": "data.csv", "type": "text/csv", "size": 20},
        {"partId": "5", "blobId": "b-png", "name": "chart.png", "type": "image/png", "size": 8},
    ],
}


class FakeJmapServer:
    """In-process JMAP endpoint served through httpx.MockTransport.

    Results are registered per method name; a list of results is consumed
    in order with the last one repeated. Callables receive the call args.
    """

    def __init__(self, session: dict | None = None):
        self.session = session or SESSION
        self.session_status = 200
        self.api_status = 200
        self.session_fetches = 0
        self.requests: list[dict] = []
        self.raw_bodies: list[bytes] = []
        self.downloads: list[str] = []
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self._results: dict[str, list] = {}
        self.drop_call_ids: set[str] = set()

    def on(self, method: str, *results) -> None:
        self._results[method] = list(results)

    def _result_for(self, method: str, args: dict):
        queue = self._results.get(method)
        if not queue:
            return None
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        return result(args) if callable(result) else result

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "GET" and url == SESSION_URL:
            self.session_fetches += 1
            if self.session_status != 200:
                return httpx.Response(self.session_status, text="Unauthorized")
            return httpx.Response(200, json=self.session)

        if request.method == "GET" and request.url.path.startswith("/jmap/download/"):
            self.downloads.append(url)
            blob_id = request.url.path.split("/")[4]
            if blob_id not in self.blobs:
                return httpx.Response(404, text="Not Found")
            data, content_type = self.blobs[blob_id]
            return httpx.Response(200, content=data, headers={"content-type": content_type})

        if request.method == "POST" and url == API_URL:
            self.raw_bodies.append(request.content)
            body = json.loads(request.content)
            self.requests.append(body)
            if self.api_status != 200:
                return httpx.Response(self.api_status, text="Server Error")

            responses = []
            for name, args, call_id in body["methodCalls"]:
                if call_id in self.drop_call_ids:
                    continue
                result = self._result_for(name, args)
                if result is None:
                    responses.append(["error", {"type": "unknownMethod"}, call_id])
                else:
                    responses.append([name, result, call_id])
            return httpx.Response(200, json={"methodResponses": responses, "sessionState": "s0"})

        return httpx.Response(404, text="Not Found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str | None = None) -> list[tuple[str, dict, str]]:
        """Every method call received, optionally filtered by name."""
        return [
            tuple(call)
            for request in self.requests
            for call in request["methodCalls"]
            if method is None or call[0] == method
        ]

    def write_calls(self) -> list[tuple[str, dict, str]]:
        return [call for call in self.calls() if call[0].endswith("/set")]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def jmap_config(monkeypatch):
    """JMAP config pointing at the fake server."""
    monkeypatch.delenv("MAILGATE_API_TOKEN", raising=False)
    monkeypatch.delenv("FASTMAIL_API_TOKEN", raising=False)
    return JmapConfig(session_url=SESSION_URL, api_token="test-token")


@pytest.fixture
def confirm_config(monkeypatch):
    monkeypatch.delenv("MAILGATE_CONFIRM_SECRET", raising=False)
    return ConfirmConfig(secret="test-secret")


@pytest.fixture
def fake_server():
    """Fake JMAP server preloaded with mailboxes, identities and one email."""
    server = FakeJmapServer()
    server.on("Mailbox/get", {"accountId": ACCOUNT_ID, "list": MAILBOXES, "state": "m0"})
    server.on("Identity/get", {"accountId": ACCOUNT_ID, "list": IDENTITIES, "state": "i0"})
    server.on("Email/get", {"accountId": ACCOUNT_ID, "list": [ORIGINAL_EMAIL], "notFound": []})
    server.on("Email/set", lambda args: {
        "accountId": ACCOUNT_ID,
        "updated": {email_id: None for email_id in args.get("update", {})},
        "created": {cid: {"id": f"new-{cid}"} for cid in args.get("create", {})},
    })
    server.on("EmailSubmission/set", lambda args: {
        "accountId": ACCOUNT_ID,
        "created": {cid: {"id": f"sub-{cid}"} for cid in args.get("create", {})},
    })
    return server


@pytest.fixture
def sample_config_toml(temp_dir, monkeypatch):
    """Create a sample TOML config file."""
    # Token must come from environment variable
    monkeypatch.setenv("MAILGATE_API_TOKEN", "secret-token")
    monkeypatch.delenv("MAILGATE_CONFIRM_SECRET", raising=False)

    config_path = temp_dir / "config.toml"
    config_path.write_text('''
[jmap]
session_url = "https://jmap.test.com/session"
timeout_seconds = 10
max_body_value_bytes = 4096
from_address = "alias@example.com"

[confirm]
require_token = true
token_ttl_seconds = 120

[server]
name = "testmail"
max_limit = 50
''')
    return config_path
