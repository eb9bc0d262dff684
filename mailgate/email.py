"""Email, address and identity records built from JMAP wire objects."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EmailAddress:
    email: str
    name: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "EmailAddress":
        return cls(email=data.get("email", ""), name=data.get("name"))

    def to_dict(self) -> dict[str, str | None]:
        return {"name": self.name, "email": self.email}


def _addresses(data: list[dict] | None) -> list[EmailAddress]:
    return [EmailAddress.from_dict(a) for a in data or []]


@dataclass
class BodyPart:
    part_id: str | None
    blob_id: str | None
    size: int = 0
    name: str | None = None
    type: str = "text/plain"
    charset: str | None = None
    disposition: str | None = None
    cid: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BodyPart":
        return cls(
            part_id=data.get("partId"),
            blob_id=data.get("blobId"),
            size=data.get("size", 0),
            name=data.get("name"),
            type=data.get("type", "application/octet-stream"),
            charset=data.get("charset"),
            disposition=data.get("disposition"),
            cid=data.get("cid"),
        )


@dataclass
class BodyValue:
    value: str
    is_encoding_problem: bool = False
    is_truncated: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "BodyValue":
        return cls(
            value=data.get("value", ""),
            is_encoding_problem=data.get("isEncodingProblem", False),
            is_truncated=data.get("isTruncated", False),
        )


@dataclass
class Email:
    """A JMAP Email object (RFC 8621 section 4).

    Only the properties that were requested are populated; the rest keep
    their empty defaults.
    """

    id: str
    thread_id: str = ""
    blob_id: str = ""
    mailbox_ids: dict[str, bool] = field(default_factory=dict)
    keywords: dict[str, bool] = field(default_factory=dict)
    size: int = 0
    received_at: str = ""
    sent_at: str | None = None
    message_id: list[str] = field(default_factory=list)
    in_reply_to: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    sender: list[EmailAddress] = field(default_factory=list)
    from_: list[EmailAddress] = field(default_factory=list)
    to: list[EmailAddress] = field(default_factory=list)
    cc: list[EmailAddress] = field(default_factory=list)
    bcc: list[EmailAddress] = field(default_factory=list)
    reply_to: list[EmailAddress] = field(default_factory=list)
    subject: str = ""
    has_attachment: bool = False
    preview: str = ""
    text_body: list[BodyPart] = field(default_factory=list)
    html_body: list[BodyPart] = field(default_factory=list)
    attachments: list[BodyPart] = field(default_factory=list)
    body_values: dict[str, BodyValue] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Email":
        return cls(
            id=data["id"],
            thread_id=data.get("threadId", ""),
            blob_id=data.get("blobId", ""),
            mailbox_ids=data.get("mailboxIds") or {},
            keywords=data.get("keywords") or {},
            size=data.get("size", 0),
            received_at=data.get("receivedAt", ""),
            sent_at=data.get("sentAt"),
            message_id=data.get("messageId") or [],
            in_reply_to=data.get("inReplyTo") or [],
            references=data.get("references") or [],
            sender=_addresses(data.get("sender")),
            from_=_addresses(data.get("from")),
            to=_addresses(data.get("to")),
            cc=_addresses(data.get("cc")),
            bcc=_addresses(data.get("bcc")),
            reply_to=_addresses(data.get("replyTo")),
            subject=data.get("subject") or "",
            has_attachment=data.get("hasAttachment", False),
            preview=data.get("preview", ""),
            text_body=[BodyPart.from_dict(p) for p in data.get("textBody") or []],
            html_body=[BodyPart.from_dict(p) for p in data.get("htmlBody") or []],
            attachments=[BodyPart.from_dict(p) for p in data.get("attachments") or []],
            body_values={
                part_id: BodyValue.from_dict(value)
                for part_id, value in (data.get("bodyValues") or {}).items()
            },
        )

    @property
    def is_unread(self) -> bool:
        return not self.keywords.get("$seen", False)


@dataclass
class Identity:
    id: str
    email: str
    name: str = ""
    reply_to: list[EmailAddress] = field(default_factory=list)
    bcc: list[EmailAddress] = field(default_factory=list)
    text_signature: str = ""
    html_signature: str = ""
    may_delete: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(
            id=data["id"],
            email=data.get("email", ""),
            name=data.get("name") or "",
            reply_to=_addresses(data.get("replyTo")),
            bcc=_addresses(data.get("bcc")),
            text_signature=data.get("textSignature") or "",
            html_signature=data.get("htmlSignature") or "",
            may_delete=data.get("mayDelete", False),
        )

    @property
    def address(self) -> EmailAddress:
        return EmailAddress(email=self.email, name=self.name or None)


@dataclass
class Attachment:
    email_id: str
    blob_id: str
    name: str | None
    type: str
    size: int


@dataclass
class AttachmentContent:
    """Downloaded attachment; ``text`` is set for text-like content types."""
    attachment: Attachment
    data: bytes
    type: str
    text: str | None = None

    @property
    def is_text(self) -> bool:
        return self.text is not None
