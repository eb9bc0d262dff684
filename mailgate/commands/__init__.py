"""Command implementations for the mailgate CLI."""

from .mail_ops import (
    list_emails_cmd,
    list_mailboxes_cmd,
    list_masked_cmd,
    read_email_cmd,
    read_thread_cmd,
    search_cmd,
)

__all__ = [
    "list_emails_cmd",
    "list_mailboxes_cmd",
    "list_masked_cmd",
    "read_email_cmd",
    "read_thread_cmd",
    "search_cmd",
]
