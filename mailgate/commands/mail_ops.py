"""Read-only mailbox commands for the CLI."""

from __future__ import annotations

import logging

from ..client import JmapClient
from ..config import Config
from ..content import format_date, format_email_full
from ..email import Email
from ..mailboxes import sort_for_display
from ..masked import MaskedEmailOperations
from ..operations import EmailOperations

logger = logging.getLogger("mailgate")


def _print_email_table(emails: list[Email]) -> None:
    print(f"{'ID':<16} {'Date':<22} {'From':<30} {'Subject':<40}")
    print("-" * 110)
    for email in emails:
        from_addr = (email.from_[0].email if email.from_ else "")[:28]
        subject = (email.subject or "")[:38]
        marker = "*" if email.is_unread else " "
        print(f"{email.id[:15]:<15}{marker} {format_date(email.received_at):<22} {from_addr:<30} {subject:<40}")
    print(f"\nTotal: {len(emails)} emails")


async def list_mailboxes_cmd(config: Config) -> None:
    """List mailboxes with unread and total counts."""
    async with JmapClient(config.jmap) as client:
        mailboxes = sort_for_display(await EmailOperations(client).list_mailboxes())

        print(f"{'Mailbox':<30} {'Role':<12} {'Unread':>8} {'Total':>8}")
        print("-" * 62)
        for m in mailboxes:
            print(f"{m.name[:29]:<30} {m.role or '':<12} {m.unread_emails:>8} {m.total_emails:>8}")


async def list_emails_cmd(config: Config, mailbox: str, limit: int = 25) -> None:
    """List the newest emails in a mailbox."""
    async with JmapClient(config.jmap) as client:
        emails = await EmailOperations(client).list_emails(mailbox, limit)
        _print_email_table(emails)


async def search_cmd(config: Config, query: str, limit: int = 25) -> None:
    """Free-text search across all mailboxes."""
    async with JmapClient(config.jmap) as client:
        emails = await EmailOperations(client).search(query, limit)
        _print_email_table(emails)


async def read_email_cmd(config: Config, email_id: str) -> None:
    """Read and display an email."""
    async with JmapClient(config.jmap) as client:
        email = await EmailOperations(client).get_email(email_id)
        print(format_email_full(email))


async def read_thread_cmd(config: Config, thread_id: str) -> None:
    """Display every email in a thread, oldest first."""
    async with JmapClient(config.jmap) as client:
        emails = await EmailOperations(client).get_thread(thread_id)
        print("\n\n=====\n\n".join(format_email_full(e) for e in emails))


async def list_masked_cmd(config: Config, state: str | None = None) -> None:
    """List masked email addresses."""
    async with JmapClient(config.jmap) as client:
        masked = await MaskedEmailOperations(client).list_masked(state)

        print(f"{'Address':<40} {'State':<10} {'Domain':<30}")
        print("-" * 82)
        for m in masked:
            print(f"{m.email[:39]:<40} {m.state:<10} {m.for_domain[:29]:<30}")
        print(f"\nTotal: {len(masked)} addresses")
