"""Tests for the preview/confirm gate."""

from unittest.mock import AsyncMock

import pytest

from mailgate.config import ConfirmConfig
from mailgate.confirm import (
    ConfirmationGate,
    Intent,
    Rendition,
    canonical_arguments,
)
from mailgate.errors import ConfirmationError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(confirm_config, clock):
    return ConfirmationGate(confirm_config, clock=clock)


@pytest.fixture
def rendition():
    return Rendition(title="EMAIL PREVIEW", fields={"To": "bob@example.com"}, body="Hi")


class TestIntent:
    def test_parse(self):
        assert Intent.parse("preview") is Intent.PREVIEW
        assert Intent.parse(Intent.CONFIRM) is Intent.CONFIRM

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid action 'send'"):
            Intent.parse("send")


class TestRendition:
    def test_render(self, rendition):
        assert rendition.render() == "EMAIL PREVIEW\n\nTo: bob@example.com\n\n--- Body ---\nHi"

    def test_render_without_body(self):
        assert Rendition(title="T", fields={"A": "1"}).render() == "T\n\nA: 1"


class TestCanonicalArguments:
    def test_drops_gate_arguments_and_none(self):
        text = canonical_arguments({
            "subject": "x",
            "action": "confirm",
            "confirmation_token": "tok",
            "cc": None,
        })
        assert text == '{"subject":"x"}'

    def test_key_order_irrelevant(self):
        assert canonical_arguments({"a": 1, "b": 2}) == canonical_arguments({"b": 2, "a": 1})


class TestTokens:
    def test_round_trip(self, gate):
        token = gate.mint_token("send_email", {"to": "bob@example.com"})
        gate.verify_token("send_email", {"to": "bob@example.com"}, token)

    def test_other_arguments_rejected(self, gate):
        token = gate.mint_token("send_email", {"to": "bob@example.com"})
        with pytest.raises(ConfirmationError, match="does not match"):
            gate.verify_token("send_email", {"to": "eve@example.com"}, token)

    def test_other_action_rejected(self, gate):
        token = gate.mint_token("send_email", {"email_id": "e1"})
        with pytest.raises(ConfirmationError, match="does not match"):
            gate.verify_token("mark_as_spam", {"email_id": "e1"}, token)

    def test_expired(self, gate, clock):
        token = gate.mint_token("send_email", {})
        clock.now += 601
        with pytest.raises(ConfirmationError, match="expired"):
            gate.verify_token("send_email", {}, token)

    def test_malformed(self, gate):
        with pytest.raises(ConfirmationError, match="Malformed"):
            gate.verify_token("send_email", {}, "garbage")

    def test_other_secret_rejected(self, monkeypatch, clock):
        monkeypatch.delenv("MAILGATE_CONFIRM_SECRET", raising=False)
        minted = ConfirmationGate(ConfirmConfig(secret="one"), clock=clock).mint_token("a", {})
        with pytest.raises(ConfirmationError):
            ConfirmationGate(ConfirmConfig(secret="two"), clock=clock).verify_token("a", {}, minted)

    def test_missing_token_allowed_by_default(self, gate):
        gate.verify_token("send_email", {}, None)

    def test_missing_token_when_required(self, clock):
        gate = ConfirmationGate(ConfirmConfig(require_token=True, secret="s"), clock=clock)
        with pytest.raises(ConfirmationError, match="requires the confirmation_token"):
            gate.verify_token("send_email", {}, None)


class TestRun:
    @pytest.mark.asyncio
    async def test_preview_does_not_perform(self, gate, rendition):
        perform = AsyncMock(return_value="E1")

        outcome = await gate.run("send_email", "preview", {"to": "bob"}, rendition, perform)

        perform.assert_not_called()
        assert outcome.intent is Intent.PREVIEW
        assert not outcome.performed
        assert outcome.token
        assert outcome.rendition is rendition

    @pytest.mark.asyncio
    async def test_confirm_performs(self, gate, rendition):
        perform = AsyncMock(return_value="E1")

        outcome = await gate.run("send_email", "confirm", {"to": "bob"}, rendition, perform)

        perform.assert_awaited_once()
        assert outcome.performed
        assert outcome.result == "E1"
        assert outcome.token is None

    @pytest.mark.asyncio
    async def test_preview_then_confirm(self, gate, rendition):
        perform = AsyncMock(return_value="E1")
        args = {"to": "bob"}

        preview = await gate.run("send_email", "preview", args, rendition, perform)
        confirmed = await gate.run("send_email", "confirm", args, rendition, perform, preview.token)

        assert confirmed.result == "E1"
        perform.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bad_token_does_not_perform(self, gate, rendition):
        perform = AsyncMock()
        preview = await gate.run("send_email", "preview", {"to": "bob"}, rendition, perform)

        with pytest.raises(ConfirmationError):
            await gate.run("send_email", "confirm", {"to": "eve"}, rendition, perform, preview.token)
        perform.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_intent(self, gate, rendition):
        perform = AsyncMock()
        with pytest.raises(ValueError):
            await gate.run("send_email", "maybe", {}, rendition, perform)
        perform.assert_not_called()
