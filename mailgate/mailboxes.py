"""Mailbox listing and name/role resolution."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import NotFoundError

if TYPE_CHECKING:
    from .client import JmapClient

logger = logging.getLogger("mailgate.mailboxes")

ROLES = frozenset({
    "all", "archive", "drafts", "flagged", "important",
    "inbox", "junk", "sent", "subscribed", "trash",
})


@dataclass
class MailboxRights:
    may_read_items: bool = True
    may_add_items: bool = True
    may_remove_items: bool = True
    may_set_seen: bool = True
    may_set_keywords: bool = True
    may_create_child: bool = True
    may_rename: bool = True
    may_delete: bool = True
    may_submit: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "MailboxRights":
        return cls(
            may_read_items=data.get("mayReadItems", True),
            may_add_items=data.get("mayAddItems", True),
            may_remove_items=data.get("mayRemoveItems", True),
            may_set_seen=data.get("maySetSeen", True),
            may_set_keywords=data.get("maySetKeywords", True),
            may_create_child=data.get("mayCreateChild", True),
            may_rename=data.get("mayRename", True),
            may_delete=data.get("mayDelete", True),
            may_submit=data.get("maySubmit", True),
        )


@dataclass
class Mailbox:
    id: str
    name: str
    role: str | None = None
    parent_id: str | None = None
    sort_order: int = 0
    total_emails: int = 0
    unread_emails: int = 0
    total_threads: int = 0
    unread_threads: int = 0
    rights: MailboxRights = field(default_factory=MailboxRights)
    is_subscribed: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "Mailbox":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            role=data.get("role"),
            parent_id=data.get("parentId"),
            sort_order=data.get("sortOrder", 0),
            total_emails=data.get("totalEmails", 0),
            unread_emails=data.get("unreadEmails", 0),
            total_threads=data.get("totalThreads", 0),
            unread_threads=data.get("unreadThreads", 0),
            rights=MailboxRights.from_dict(data.get("myRights") or {}),
            is_subscribed=data.get("isSubscribed", True),
        )


def resolve_mailbox(mailboxes: list[Mailbox], name_or_role: str) -> Mailbox | None:
    """Pick the mailbox a user meant by ``name_or_role``.

    Precedence: exact name, then role (lower-cased input), then
    case-insensitive name. An exact name always beats a role, so a folder
    literally called "Archive" wins over a differently-named archive role.
    """
    lower = name_or_role.lower()
    for mailbox in mailboxes:
        if mailbox.name == name_or_role:
            return mailbox
    for mailbox in mailboxes:
        if mailbox.role == lower:
            return mailbox
    for mailbox in mailboxes:
        if mailbox.name.lower() == lower:
            return mailbox
    return None


def find_role(mailboxes: list[Mailbox], role: str) -> Mailbox | None:
    return next((m for m in mailboxes if m.role == role), None)


def sort_for_display(mailboxes: list[Mailbox]) -> list[Mailbox]:
    """Role mailboxes first, then alphabetical by name."""
    return sorted(mailboxes, key=lambda m: (m.role is None, m.name.lower()))


class MailboxDirectory:
    """Resolves mailbox names against a fresh listing on every lookup."""

    def __init__(self, client: "JmapClient"):
        self.client = client

    async def list_mailboxes(self) -> list[Mailbox]:
        account_id = await self.client.get_account_id()
        result = await self.client.call("Mailbox/get", {"accountId": account_id})
        return [Mailbox.from_dict(m) for m in result.get("list", [])]

    async def resolve(self, name_or_role: str) -> Mailbox | None:
        mailbox = resolve_mailbox(await self.list_mailboxes(), name_or_role)
        if mailbox is None:
            logger.debug(f"No mailbox matches '{name_or_role}'")
        return mailbox

    async def require(self, name_or_role: str) -> Mailbox:
        mailbox = await self.resolve(name_or_role)
        if mailbox is None:
            raise NotFoundError("mailbox", name_or_role)
        return mailbox

    async def by_role(self, role: str) -> Mailbox:
        mailbox = find_role(await self.list_mailboxes(), role)
        if mailbox is None:
            raise NotFoundError("mailbox", role)
        return mailbox

    async def get_by_id(self, mailbox_id: str) -> Mailbox | None:
        return next((m for m in await self.list_mailboxes() if m.id == mailbox_id), None)
