"""Gated versions of the verbs that have externally visible effects."""

import logging

from .compose import Draft, parse_addresses
from .confirm import ConfirmationGate, Outcome, Rendition
from .content import format_address, format_address_list
from .email import Identity
from .masked import MaskedEmailOperations, validate_state
from .operations import EmailOperations

logger = logging.getLogger("mailgate.actions")


def draft_rendition(title: str, draft: Draft, identity: Identity) -> Rendition:
    """Describe every field of the message the confirm call would submit."""
    fields = {
        "From": format_address(identity.address),
        "To": format_address_list(draft.to),
        "CC": format_address_list(draft.cc),
        "BCC": format_address_list(draft.bcc),
        "Subject": draft.subject,
    }
    if draft.in_reply_to:
        fields["In-Reply-To"] = " ".join(draft.in_reply_to)
    if draft.references:
        fields["References"] = " ".join(draft.references)
    return Rendition(title=title, fields=fields, body=draft.text_body)


class GatedActions:
    """Send, reply, forward, spam training and masked-address state changes.

    Each method builds the exact payload first (reads only), then lets the
    gate either return its rendition or perform it.
    """

    def __init__(
        self,
        operations: EmailOperations,
        gate: ConfirmationGate,
        masked: MaskedEmailOperations | None = None,
    ):
        self.operations = operations
        self.gate = gate
        self.masked = masked or MaskedEmailOperations(operations.client)

    async def send_email(
        self,
        intent: str,
        to: str | list[str],
        subject: str,
        body: str,
        cc: str | list[str] | None = None,
        bcc: str | list[str] | None = None,
        token: str | None = None,
    ) -> Outcome:
        draft = Draft(
            to=parse_addresses(to),
            subject=subject,
            text_body=body,
            cc=parse_addresses(cc),
            bcc=parse_addresses(bcc),
        )
        if not draft.to:
            raise ValueError("At least one recipient (to) is required")

        identity, _, _ = await self.operations.send_context()
        arguments = {"to": to, "subject": subject, "body": body, "cc": cc, "bcc": bcc}
        return await self.gate.run(
            "send_email",
            intent,
            arguments,
            draft_rendition("EMAIL PREVIEW - Review before sending", draft, identity),
            lambda: self.operations.send(draft),
            token,
        )

    async def reply_to_email(self, intent: str, email_id: str, body: str, token: str | None = None) -> Outcome:
        draft = await self.operations.build_reply(email_id, body)
        identity, _, _ = await self.operations.send_context()
        return await self.gate.run(
            "reply_to_email",
            intent,
            {"email_id": email_id, "body": body},
            draft_rendition("REPLY PREVIEW - Review before sending", draft, identity),
            lambda: self.operations.send(draft),
            token,
        )

    async def forward_email(
        self,
        intent: str,
        email_id: str,
        to: str | list[str],
        body: str = "",
        cc: str | list[str] | None = None,
        bcc: str | list[str] | None = None,
        token: str | None = None,
    ) -> Outcome:
        recipients = parse_addresses(to)
        if not recipients:
            raise ValueError("At least one recipient (to) is required")

        draft = await self.operations.build_forward(
            email_id, body, recipients, parse_addresses(cc), parse_addresses(bcc)
        )
        identity, _, _ = await self.operations.send_context()
        return await self.gate.run(
            "forward_email",
            intent,
            {"email_id": email_id, "to": to, "body": body, "cc": cc, "bcc": bcc},
            draft_rendition("FORWARD PREVIEW - Review before sending", draft, identity),
            lambda: self.operations.send(draft),
            token,
        )

    async def mark_as_spam(self, intent: str, email_id: str, token: str | None = None) -> Outcome:
        email = await self.operations.get_email(email_id)
        junk = await self.operations.mailboxes.by_role("junk")
        rendition = Rendition(
            title="SPAM PREVIEW - This will move the email to Junk and train the spam filter",
            fields={
                "Email": email.subject or "(no subject)",
                "From": format_address_list(email.from_),
                "Target": f"{junk.name} (id: {junk.id})",
                "Keywords": "+$junk, -$notjunk",
            },
        )
        return await self.gate.run(
            "mark_as_spam",
            intent,
            {"email_id": email_id},
            rendition,
            lambda: self.operations.mark_spam(email_id),
            token,
        )

    async def set_masked_email_state(
        self, intent: str, masked_id: str, state: str, token: str | None = None
    ) -> Outcome:
        validate_state(state)
        masked = await self.masked.get(masked_id)
        rendition = Rendition(
            title="MASKED EMAIL PREVIEW - State change",
            fields={
                "Address": masked.email,
                "Domain": masked.for_domain or "(none)",
                "Current state": masked.state,
                "New state": state,
            },
        )
        return await self.gate.run(
            "set_masked_email_state",
            intent,
            {"masked_id": masked_id, "state": state},
            rendition,
            lambda: self.masked.set_state(masked_id, state),
            token,
        )
