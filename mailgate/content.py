"""Plain-text rendering of emails, addresses and mailboxes."""

import html
import re
from datetime import datetime

from .email import Email, EmailAddress
from .mailboxes import Mailbox

# Pre-compiled regex patterns for better performance
_BLOCK_TAG_RE = re.compile(r'<\s*(br|/p|/div|/li|/tr|/h[1-6])\b[^>]*>', re.IGNORECASE)
_SCRIPT_STYLE_RE = re.compile(r'<(script|style)\b.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
_HTML_TAG_RE = re.compile(r'<[^>]+>')
_MULTI_SPACE_RE = re.compile(r'[ \t]+')
_MULTI_NEWLINE_RE = re.compile(r'\n\s*\n\s*\n+')
_ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def html_to_text(body: str) -> str:
    """Reduce an HTML body to readable plain text.

    Block-level closing tags become line breaks, scripts and styles are
    dropped, remaining tags are stripped and entities unescaped.
    """
    if not body:
        return ""

    text = _SCRIPT_STYLE_RE.sub('', body)
    text = _BLOCK_TAG_RE.sub('\n', text)
    text = _HTML_TAG_RE.sub('', text)
    text = html.unescape(text)

    text = _MULTI_SPACE_RE.sub(' ', text)
    text = _MULTI_NEWLINE_RE.sub('\n\n', text)
    return '\n'.join(line.strip() for line in text.split('\n')).strip()


def body_text(email: Email) -> str:
    """Best-effort plain text of an email body.

    Prefers the value of the first text body part, then falls back to the
    first fetched body value (converted from HTML when that part is HTML).
    """
    if not email.body_values:
        return ""

    for part in email.text_body:
        if part.part_id and part.part_id in email.body_values:
            value = email.body_values[part.part_id].value
            return html_to_text(value) if part.type == "text/html" else value

    html_parts = {p.part_id for p in email.html_body if p.type == "text/html"}
    part_id, value = next(iter(email.body_values.items()))
    if part_id in html_parts:
        return html_to_text(value.value)
    return value.value


def format_address(addr: EmailAddress) -> str:
    if addr.name:
        return f"{addr.name} <{addr.email}>"
    return addr.email


def format_address_list(addrs: list[EmailAddress] | None) -> str:
    if not addrs:
        return "(none)"
    return ", ".join(format_address(a) for a in addrs)


def format_date(value: str | None) -> str:
    """Render an RFC 3339 timestamp as ``YYYY-MM-DD HH:MM UTC``-style text."""
    if not value:
        return "(unknown)"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M %Z").strip()


def normalize_date(value: str) -> str:
    """Expand a bare ``YYYY-MM-DD`` date to midnight UTC; pass anything else through."""
    if _ISO_DATE_RE.match(value):
        return f"{value}T00:00:00Z"
    return value


def format_mailbox(m: Mailbox) -> str:
    role = f" [{m.role}]" if m.role else ""
    unread = f" ({m.unread_emails} unread)" if m.unread_emails > 0 else ""
    return f"{m.name}{role}{unread} - {m.total_emails} emails (id: {m.id})"


def format_email_summary(e: Email) -> str:
    flags = ""
    if e.is_unread:
        flags += " [UNREAD]"
    if e.keywords.get("$flagged"):
        flags += " [FLAGGED]"
    if e.has_attachment:
        flags += " [attachment]"
    return f"""{flags.strip()}
ID: {e.id}
From: {format_address_list(e.from_)}
Subject: {e.subject or "(no subject)"}
Date: {format_date(e.received_at)}
Preview: {e.preview}""".lstrip("\n")


def format_email_full(e: Email) -> str:
    lines = [
        f"ID: {e.id}",
        f"Thread ID: {e.thread_id}",
        f"From: {format_address_list(e.from_)}",
        f"To: {format_address_list(e.to)}",
        f"CC: {format_address_list(e.cc)}",
        f"Subject: {e.subject or '(no subject)'}",
        f"Date: {format_date(e.received_at)}",
        f"Has Attachment: {e.has_attachment}",
    ]
    for attachment in e.attachments:
        if attachment.blob_id:
            lines.append(
                f"Attachment: {attachment.name or '(unnamed)'} "
                f"({attachment.type}, {attachment.size} bytes, blob: {attachment.blob_id})"
            )
    lines.append("")
    lines.append("--- Body ---")
    lines.append(body_text(e))
    return "\n".join(lines)
