"""Two-phase preview/confirm gate for actions with external side effects.

A preview computes exactly what would happen and performs no writes. A
confirm performs the action. Nothing is stored between the two calls:
the preview hands out a signed token that binds the action name and its
arguments, and a confirm that presents the token is checked against it.
"""

import hashlib
import hmac
import json
import logging
import secrets
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import ConfirmConfig
from .errors import ConfirmationError

logger = logging.getLogger("mailgate.confirm")

# Caller arguments that steer the gate and are not part of the action itself
GATE_ARGUMENTS = frozenset({"action", "confirmation_token"})


class Intent(str, Enum):
    PREVIEW = "preview"
    CONFIRM = "confirm"

    @classmethod
    def parse(cls, value: "str | Intent") -> "Intent":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid action '{value}', expected 'preview' or 'confirm'") from None


@dataclass
class Rendition:
    """Human-readable description of an action, identical for both phases."""
    title: str
    fields: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    def render(self) -> str:
        lines = [self.title, ""]
        lines.extend(f"{name}: {value}" for name, value in self.fields.items())
        if self.body is not None:
            lines.append("")
            lines.append("--- Body ---")
            lines.append(self.body)
        return "\n".join(lines)


@dataclass
class Outcome:
    action: str
    intent: Intent
    rendition: Rendition
    token: str | None = None
    result: Any = None

    @property
    def performed(self) -> bool:
        return self.intent is Intent.CONFIRM


def canonical_arguments(arguments: Mapping[str, Any]) -> str:
    """Stable JSON for the action's own arguments (gate arguments and None values dropped)."""
    relevant = {
        key: value
        for key, value in arguments.items()
        if key not in GATE_ARGUMENTS and value is not None
    }
    return json.dumps(relevant, sort_keys=True, separators=(",", ":"), default=str)


class ConfirmationGate:
    """Runs an action in preview or confirm mode."""

    def __init__(self, config: ConfirmConfig | None = None, clock: Callable[[], float] = time.time):
        self.config = config or ConfirmConfig()
        secret = self.config.secret or secrets.token_hex(32)
        self._secret = secret.encode()
        self._clock = clock

    def _digest(self, action: str, expires: int, arguments: Mapping[str, Any]) -> str:
        message = f"{action}\n{expires}\n{canonical_arguments(arguments)}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def mint_token(self, action: str, arguments: Mapping[str, Any]) -> str:
        expires = int(self._clock()) + self.config.token_ttl_seconds
        return f"{expires}.{self._digest(action, expires, arguments)}"

    def verify_token(self, action: str, arguments: Mapping[str, Any], token: str | None) -> None:
        """Check a confirm token.

        Raises:
            ConfirmationError: If the token is missing (when required),
                malformed, expired, or was minted for other arguments
        """
        if not token:
            if self.config.require_token:
                raise ConfirmationError(
                    f"Confirming '{action}' requires the confirmation_token from its preview"
                )
            return

        expires_text, _, digest = token.partition(".")
        try:
            expires = int(expires_text)
        except ValueError:
            raise ConfirmationError("Malformed confirmation token") from None

        if self._clock() > expires:
            raise ConfirmationError("Confirmation token expired, preview again")

        expected = self._digest(action, expires, arguments)
        if not hmac.compare_digest(expected, digest):
            raise ConfirmationError(
                "Confirmation token does not match these arguments, preview again"
            )

    async def run(
        self,
        action: str,
        intent: "str | Intent",
        arguments: Mapping[str, Any],
        rendition: Rendition,
        perform: Callable[[], Awaitable[Any]],
        token: str | None = None,
    ) -> Outcome:
        """Preview or perform ``action``.

        Args:
            action: Name of the gated action, part of the token binding
            intent: ``preview`` or ``confirm``
            arguments: The caller's arguments for the action
            rendition: Read-only description of what confirm would do
            perform: Performs the action; only awaited on confirm
            token: Token from the preview, checked on confirm
        """
        intent = Intent.parse(intent)

        if intent is Intent.PREVIEW:
            logger.debug(f"Preview of {action}")
            return Outcome(
                action=action,
                intent=intent,
                rendition=rendition,
                token=self.mint_token(action, arguments),
            )

        self.verify_token(action, arguments, token)
        logger.info(f"Confirmed {action}")
        result = await perform()
        return Outcome(action=action, intent=intent, rendition=rendition, result=result)
