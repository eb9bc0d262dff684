"""Builders for outgoing messages and search filters.

Everything here is pure: no network access. The operations layer fetches
what these builders need and sends what they produce.
"""

from dataclasses import dataclass, field
from typing import Any

from .content import body_text, format_address_list, format_date, normalize_date
from .email import Email, EmailAddress, Identity
from .errors import ComposeError

TEXT_PART_ID = "body"
HTML_PART_ID = "html"

FORWARD_MARKER = "---------- Forwarded message ----------"


@dataclass
class Draft:
    """Everything needed to create and submit one outgoing message."""
    to: list[EmailAddress]
    subject: str
    text_body: str
    cc: list[EmailAddress] = field(default_factory=list)
    bcc: list[EmailAddress] = field(default_factory=list)
    html_body: str | None = None
    in_reply_to: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)


def parse_addresses(value: str | list[str] | None) -> list[EmailAddress]:
    """Parse comma-separated (or listed) addresses; ``Name <addr>`` keeps the name."""
    if not value:
        return []
    items = value.split(",") if isinstance(value, str) else value

    addresses = []
    for item in items:
        item = item.strip()
        if not item:
            continue
        if item.endswith(">") and "<" in item:
            name, _, addr = item[:-1].rpartition("<")
            name = name.strip().strip('"') or None
            addresses.append(EmailAddress(email=addr.strip(), name=name))
        else:
            addresses.append(EmailAddress(email=item))
    return addresses


def _prefixed(subject: str, prefix: str) -> str:
    if subject.lower().startswith(prefix.lower()):
        return subject
    return f"{prefix} {subject}"


def reply_subject(subject: str | None) -> str:
    return _prefixed(subject or "", "Re:")


def forward_subject(subject: str | None) -> str:
    return _prefixed(subject or "", "Fwd:")


def build_reply(original: Email, body: str) -> Draft:
    """Derive a reply to ``original``.

    Raises:
        ComposeError: If the original has neither a reply-to nor a from address
    """
    recipients = original.reply_to or original.from_
    if not recipients:
        raise ComposeError("Cannot determine reply address")

    references = list(original.references)
    if original.message_id:
        references.append(original.message_id[0])

    return Draft(
        to=[recipients[0]],
        subject=reply_subject(original.subject),
        text_body=body,
        in_reply_to=original.message_id[:1],
        references=references,
    )


def attribution_block(original: Email) -> str:
    return "\n".join([
        FORWARD_MARKER,
        f"From: {format_address_list(original.from_)}",
        f"Date: {format_date(original.sent_at or original.received_at)}",
        f"Subject: {original.subject or '(no subject)'}",
        f"To: {format_address_list(original.to)}",
    ])


def build_forward(
    original: Email,
    note: str,
    to: list[EmailAddress],
    cc: list[EmailAddress] | None = None,
    bcc: list[EmailAddress] | None = None,
) -> Draft:
    """Prepare a forward of ``original``; recipients come from the caller."""
    parts = []
    if note:
        parts.append(note)
    parts.append(attribution_block(original))
    parts.append(body_text(original))

    return Draft(
        to=to,
        subject=forward_subject(original.subject),
        text_body="\n\n".join(parts),
        cc=cc or [],
        bcc=bcc or [],
    )


def build_email_create(draft: Draft, identity: Identity, drafts_mailbox_id: str) -> dict[str, Any]:
    """Render a Draft as an ``Email/set`` create object stored in Drafts."""
    body_values: dict[str, dict[str, str]] = {TEXT_PART_ID: {"value": draft.text_body}}
    email: dict[str, Any] = {
        "mailboxIds": {drafts_mailbox_id: True},
        "keywords": {"$draft": True, "$seen": True},
        "from": [identity.address.to_dict()],
        "to": [a.to_dict() for a in draft.to],
        "subject": draft.subject,
        "bodyValues": body_values,
        "textBody": [{"partId": TEXT_PART_ID, "type": "text/plain"}],
    }
    if draft.cc:
        email["cc"] = [a.to_dict() for a in draft.cc]
    if draft.bcc:
        email["bcc"] = [a.to_dict() for a in draft.bcc]
    if draft.html_body:
        body_values[HTML_PART_ID] = {"value": draft.html_body}
        email["htmlBody"] = [{"partId": HTML_PART_ID, "type": "text/html"}]
    if draft.in_reply_to:
        email["inReplyTo"] = list(draft.in_reply_to)
    if draft.references:
        email["references"] = list(draft.references)
    return email


@dataclass
class SearchCriteria:
    """Structured search; only the fields that are set become conditions."""
    from_: str | None = None
    to: str | None = None
    cc: str | None = None
    bcc: str | None = None
    subject: str | None = None
    body: str | None = None
    text: str | None = None
    mailbox: str | None = None
    after: str | None = None
    before: str | None = None
    has_attachment: bool | None = None
    unread: bool | None = None
    flagged: bool | None = None
    min_size: int | None = None
    max_size: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchCriteria":
        known = {name for name in cls.__dataclass_fields__}
        values = {}
        for key, value in data.items():
            attr = "from_" if key == "from" else key
            if attr not in known:
                raise ValueError(f"Unknown search field: {key}")
            values[attr] = value
        return cls(**values)


_STRING_FIELDS = (
    ("from_", "from"),
    ("to", "to"),
    ("cc", "cc"),
    ("bcc", "bcc"),
    ("subject", "subject"),
    ("body", "body"),
    ("text", "text"),
)


def text_filter(query: str) -> dict[str, Any]:
    """OR the free-text query across subject, from, to and body."""
    return {
        "operator": "OR",
        "conditions": [
            {"subject": query},
            {"from": query},
            {"to": query},
            {"body": query},
        ],
    }


def criteria_filter(criteria: SearchCriteria, mailbox_id: str | None = None) -> dict[str, Any]:
    """AND together one condition per field present in ``criteria``.

    ``mailbox_id`` is the already-resolved id for ``criteria.mailbox``.

    Raises:
        ValueError: If no field is set
    """
    conditions: list[dict[str, Any]] = []
    for attr, prop in _STRING_FIELDS:
        value = getattr(criteria, attr)
        if value:
            conditions.append({prop: value})

    if mailbox_id:
        conditions.append({"inMailbox": mailbox_id})
    if criteria.after:
        conditions.append({"after": normalize_date(criteria.after)})
    if criteria.before:
        conditions.append({"before": normalize_date(criteria.before)})
    if criteria.has_attachment is not None:
        conditions.append({"hasAttachment": criteria.has_attachment})
    if criteria.unread is not None:
        key = "notKeyword" if criteria.unread else "hasKeyword"
        conditions.append({key: "$seen"})
    if criteria.flagged is not None:
        key = "hasKeyword" if criteria.flagged else "notKeyword"
        conditions.append({key: "$flagged"})
    if criteria.min_size is not None:
        conditions.append({"minSize": criteria.min_size})
    if criteria.max_size is not None:
        conditions.append({"maxSize": criteria.max_size})

    if not conditions:
        raise ValueError("Search needs at least one condition")
    return {"operator": "AND", "conditions": conditions}
