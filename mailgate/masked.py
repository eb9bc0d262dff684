"""Fastmail masked (disposable) email addresses."""

import logging
from dataclasses import dataclass

from .client import JmapClient
from .errors import CreationError, NoAccountError, NotFoundError, UpdateError
from .protocol import CAPABILITY_MASKED_EMAIL, MASKED_EMAIL_USING, Batch, SetResult

logger = logging.getLogger("mailgate.masked")

WRITABLE_STATES = ("enabled", "disabled", "deleted")

NEW_MASKED_ID = "masked"


@dataclass
class MaskedEmail:
    id: str
    email: str
    state: str
    for_domain: str = ""
    description: str = ""
    url: str | None = None
    created_by: str = ""
    created_at: str | None = None
    last_message_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "MaskedEmail":
        return cls(
            id=data["id"],
            email=data.get("email", ""),
            state=data.get("state", "enabled"),
            for_domain=data.get("forDomain") or "",
            description=data.get("description") or "",
            url=data.get("url"),
            created_by=data.get("createdBy") or "",
            created_at=data.get("createdAt"),
            last_message_at=data.get("lastMessageAt"),
        )


def validate_state(state: str) -> str:
    if state not in WRITABLE_STATES:
        raise ValueError(f"Invalid masked email state '{state}', expected one of: {', '.join(WRITABLE_STATES)}")
    return state


class MaskedEmailOperations:
    """Create, list and change the state of masked email addresses."""

    def __init__(self, client: JmapClient):
        self.client = client

    async def _account_id(self) -> str:
        try:
            return await self.client.get_account_id(CAPABILITY_MASKED_EMAIL)
        except NoAccountError:
            return await self.client.get_account_id()

    async def _call(self, method: str, arguments: dict) -> dict:
        batch = Batch(using=MASKED_EMAIL_USING)
        call = batch.add(method, arguments)
        response = await self.client.request(batch)
        return response.get(call.call_id, call.name)

    async def list_masked(self, state: str | None = None) -> list[MaskedEmail]:
        result = await self._call("MaskedEmail/get", {"accountId": await self._account_id(), "ids": None})
        masked = [MaskedEmail.from_dict(m) for m in result.get("list", [])]
        if state:
            masked = [m for m in masked if m.state == state]
        return masked

    async def get(self, masked_id: str) -> "MaskedEmail":
        result = await self._call("MaskedEmail/get", {"accountId": await self._account_id(), "ids": [masked_id]})
        found = result.get("list", [])
        if not found:
            raise NotFoundError("masked email", masked_id)
        return MaskedEmail.from_dict(found[0])

    async def create(
        self,
        for_domain: str,
        description: str = "",
        email_prefix: str | None = None,
        state: str = "enabled",
    ) -> "MaskedEmail":
        """Create a new masked address for ``for_domain``."""
        validate_state(state)
        properties = {"forDomain": for_domain, "description": description, "state": state}
        if email_prefix:
            properties["emailPrefix"] = email_prefix

        result = SetResult.from_dict(await self._call("MaskedEmail/set", {
            "accountId": await self._account_id(),
            "create": {NEW_MASKED_ID: properties},
        }))

        error = result.not_created.get(NEW_MASKED_ID)
        if error is not None:
            raise CreationError(NEW_MASKED_ID, error.type, error.description)

        created = result.created.get(NEW_MASKED_ID) or {}
        if "id" not in created:
            raise CreationError(NEW_MASKED_ID, "noId", "no id returned")
        logger.info(f"Created masked email {created.get('email', '')} for {for_domain}")
        return MaskedEmail.from_dict({**properties, **created})

    async def _update(self, masked_id: str, patch: dict) -> None:
        result = SetResult.from_dict(await self._call("MaskedEmail/set", {
            "accountId": await self._account_id(),
            "update": {masked_id: patch},
        }))
        error = result.not_updated.get(masked_id)
        if error is not None:
            if error.type == "notFound":
                raise NotFoundError("masked email", masked_id)
            raise UpdateError(masked_id, error.type, error.description)

    async def set_state(self, masked_id: str, state: str) -> None:
        await self._update(masked_id, {"state": validate_state(state)})
        logger.info(f"Masked email {masked_id} is now {state}")

    async def update_description(self, masked_id: str, description: str) -> None:
        await self._update(masked_id, {"description": description})
