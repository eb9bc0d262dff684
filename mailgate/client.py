"""Async JMAP protocol client."""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .config import JmapConfig
from .errors import RequestFailedError
from .protocol import CAPABILITY_MAIL, Batch, BatchResponse, Session
from .session import SessionCache

logger = logging.getLogger("mailgate")


@dataclass
class Blob:
    data: bytes
    content_type: str


class JmapClient:
    """Async client for a JMAP API endpoint.

    Sends one batch per request and hands back the demultiplexed responses.
    Every verb builds its own batch; nothing is cached apart from the session.
    """

    def __init__(self, config: JmapConfig, transport: httpx.AsyncBaseTransport | None = None):
        if not config.api_token:
            raise ValueError(
                "JMAP API token required. Set MAILGATE_API_TOKEN or FASTMAIL_API_TOKEN. "
                "Generate one at Fastmail -> Settings -> Privacy & Security -> Integrations -> API tokens"
            )
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._sessions: SessionCache | None = None

    async def __aenter__(self) -> "JmapClient":
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self.config.api_token}"},
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )
        self._sessions = SessionCache(self._client, self.config.session_url)
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            self._sessions = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async context manager.")
        return self._client

    @property
    def sessions(self) -> SessionCache:
        if self._sessions is None:
            raise RuntimeError("Client not initialized. Use async context manager.")
        return self._sessions

    async def get_session(self) -> Session:
        return await self.sessions.get_session()

    async def get_account_id(self, capability: str = CAPABILITY_MAIL) -> str:
        return await self.sessions.get_account_id(capability)

    async def request(self, batch: Batch) -> BatchResponse:
        """Send a batch and return its responses.

        Back-reference markers in the arguments are sent as-is; the server
        resolves them.

        Raises:
            RequestFailedError: If the API answers with a non-2xx status
            ProtocolError: If any response is a method-level ``error``
            MissingResponseError: If a call in the batch got no response
        """
        session = await self.get_session()

        logger.debug(f"JMAP request: {', '.join(call.name for call in batch)}")
        response = await self.client.post(session.api_url, json=batch.to_request())
        if not response.is_success:
            raise RequestFailedError(response.status_code, response.text)

        result = BatchResponse.from_dict(response.json())
        result.raise_for_errors()
        result.check_complete(batch)
        return result

    async def call(self, method: str, arguments: dict[str, Any], call_id: str = "0") -> dict[str, Any]:
        """Make a single method call and return its result."""
        batch = Batch()
        batch.add(method, arguments, call_id)
        response = await self.request(batch)
        return response.get(call_id, method)

    async def download_blob(
        self,
        blob_id: str,
        name: str = "download",
        content_type: str = "application/octet-stream",
    ) -> Blob:
        """Download a blob through the session's download URL template."""
        session = await self.get_session()
        account_id = await self.get_account_id()

        url = (
            session.download_url
            .replace("{accountId}", quote(account_id, safe=""))
            .replace("{blobId}", quote(blob_id, safe=""))
            .replace("{name}", quote(name, safe=""))
            .replace("{type}", quote(content_type, safe=""))
        )

        logger.debug(f"Downloading blob {blob_id}")
        response = await self.client.get(url)
        if not response.is_success:
            raise RequestFailedError(response.status_code, response.text)

        declared = response.headers.get("content-type", content_type)
        return Blob(data=response.content, content_type=declared.split(";")[0].strip())
