"""JMAP session discovery and caching."""

import asyncio
import logging

import httpx

from .errors import NoAccountError, SessionFetchError
from .protocol import CAPABILITY_MAIL, Session

logger = logging.getLogger("mailgate.session")


class SessionCache:
    """Fetches the session descriptor once and hands out the cached value.

    One cache belongs to one client; there is no process-wide instance.
    """

    def __init__(self, http: httpx.AsyncClient, session_url: str):
        self._http = http
        self._session_url = session_url
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Session | None:
        return self._session

    async def get_session(self) -> Session:
        """Return the session, fetching it on first use.

        Raises:
            SessionFetchError: If the session endpoint returns a non-2xx status
        """
        if self._session is not None:
            return self._session

        async with self._lock:
            # Another task may have finished the fetch while we waited
            if self._session is not None:
                return self._session

            response = await self._http.get(self._session_url)
            if not response.is_success:
                raise SessionFetchError(response.status_code, response.text)

            self._session = Session.from_dict(response.json())
            logger.info(f"JMAP session established for {self._session.username or 'account'}")
            return self._session

    async def get_account_id(self, capability: str = CAPABILITY_MAIL) -> str:
        """Return the primary account id for ``capability``.

        Raises:
            NoAccountError: If the session has no primary account for it
        """
        session = await self.get_session()
        account_id = session.account_for(capability)
        if not account_id:
            raise NoAccountError(capability)
        return account_id

    def invalidate(self) -> None:
        """Forget the cached session so the next call fetches a fresh one."""
        self._session = None
