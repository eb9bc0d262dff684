"""Mail verbs composed from JMAP batches and mailbox lookups."""

import logging
from typing import Any

from .client import JmapClient
from .compose import (
    Draft,
    SearchCriteria,
    build_email_create,
    build_forward,
    build_reply,
    criteria_filter,
    text_filter,
)
from .email import Attachment, AttachmentContent, Email, EmailAddress, Identity
from .errors import CreationError, NotFoundError, SubmissionError, UpdateError
from .mailboxes import Mailbox, MailboxDirectory, find_role
from .protocol import Batch, SetResult

logger = logging.getLogger("mailgate.operations")

# Standard properties to fetch for email listings
EMAIL_LIST_PROPERTIES = [
    "id",
    "threadId",
    "mailboxIds",
    "keywords",
    "from",
    "to",
    "subject",
    "receivedAt",
    "preview",
    "hasAttachment",
    "size",
]

# Full properties for single email fetch
EMAIL_FULL_PROPERTIES = EMAIL_LIST_PROPERTIES + [
    "blobId",
    "cc",
    "bcc",
    "replyTo",
    "sender",
    "sentAt",
    "messageId",
    "inReplyTo",
    "references",
    "bodyValues",
    "textBody",
    "htmlBody",
    "attachments",
]

TEXT_TYPE_MARKERS = ("json", "xml", "javascript", "csv")

DRAFT_CREATION_ID = "draft"
SUBMISSION_CREATION_ID = "submission"


def is_text_type(content_type: str) -> bool:
    return content_type.startswith("text/") or any(m in content_type for m in TEXT_TYPE_MARKERS)


class EmailOperations:
    """Mailbox and message verbs for one JMAP account."""

    def __init__(self, client: JmapClient, mailboxes: MailboxDirectory | None = None):
        self.client = client
        self.mailboxes = mailboxes or MailboxDirectory(client)

    @property
    def max_body_value_bytes(self) -> int:
        return self.client.config.max_body_value_bytes

    # ============ Reading ============

    async def list_mailboxes(self) -> list[Mailbox]:
        return await self.mailboxes.list_mailboxes()

    async def _query(self, email_filter: dict[str, Any], limit: int) -> list[Email]:
        account_id = await self.client.get_account_id()

        query_result = await self.client.call("Email/query", {
            "accountId": account_id,
            "filter": email_filter,
            "sort": [{"property": "receivedAt", "isAscending": False}],
            "limit": limit,
        })

        ids = query_result.get("ids", [])
        if not ids:
            return []

        get_result = await self.client.call("Email/get", {
            "accountId": account_id,
            "ids": ids,
            "properties": EMAIL_LIST_PROPERTIES,
        })
        return [Email.from_dict(e) for e in get_result.get("list", [])]

    async def list_emails(self, mailbox_name: str, limit: int = 25) -> list[Email]:
        """List the newest emails in a mailbox."""
        mailbox = await self.mailboxes.require(mailbox_name)
        return await self._query({"inMailbox": mailbox.id}, limit)

    async def search(self, query: str | dict[str, Any] | SearchCriteria, limit: int = 25) -> list[Email]:
        """Search emails by free text or structured criteria.

        Free text matches subject, from, to or body. Structured criteria must
        all match; a ``mailbox`` criterion is resolved by name or role.
        """
        if isinstance(query, str):
            email_filter = text_filter(query)
        else:
            criteria = query if isinstance(query, SearchCriteria) else SearchCriteria.from_dict(query)
            mailbox_id = None
            if criteria.mailbox:
                mailbox_id = (await self.mailboxes.require(criteria.mailbox)).id
            email_filter = criteria_filter(criteria, mailbox_id)

        return await self._query(email_filter, limit)

    async def find_email(self, email_id: str) -> Email | None:
        account_id = await self.client.get_account_id()
        result = await self.client.call("Email/get", {
            "accountId": account_id,
            "ids": [email_id],
            "properties": EMAIL_FULL_PROPERTIES,
            "fetchTextBodyValues": True,
            "fetchHTMLBodyValues": True,
            "maxBodyValueBytes": self.max_body_value_bytes,
        })
        emails = result.get("list", [])
        return Email.from_dict(emails[0]) if emails else None

    async def get_email(self, email_id: str) -> Email:
        email = await self.find_email(email_id)
        if email is None:
            raise NotFoundError("email", email_id)
        return email

    async def get_thread(self, thread_id: str) -> list[Email]:
        """Fetch every email in a thread, oldest first, in one batch."""
        account_id = await self.client.get_account_id()

        batch = Batch()
        thread_call = batch.add("Thread/get", {"accountId": account_id, "ids": [thread_id]})
        email_call = batch.add("Email/get", {
            "accountId": account_id,
            "#ids": batch.ref(thread_call, "/list/*/emailIds"),
            "properties": EMAIL_FULL_PROPERTIES,
            "fetchTextBodyValues": True,
            "maxBodyValueBytes": self.max_body_value_bytes,
        })
        response = await self.client.request(batch)

        if not response.get(thread_call.call_id, thread_call.name).get("list"):
            raise NotFoundError("thread", thread_id)

        emails = [Email.from_dict(e) for e in response.get(email_call.call_id, email_call.name).get("list", [])]
        return sorted(emails, key=lambda e: e.received_at)

    # ============ Modification ============

    async def _update(self, email_id: str, patch: dict[str, Any]) -> None:
        account_id = await self.client.get_account_id()
        result = SetResult.from_dict(await self.client.call("Email/set", {
            "accountId": account_id,
            "update": {email_id: patch},
        }))

        error = result.not_updated.get(email_id)
        if error is not None:
            if error.type == "notFound":
                raise NotFoundError("email", email_id)
            logger.warning(f"Email/set rejected update of {email_id}: {error.type}")
            raise UpdateError(email_id, error.type, error.description)

    async def _keywords(self, email_id: str) -> dict[str, bool]:
        account_id = await self.client.get_account_id()
        result = await self.client.call("Email/get", {
            "accountId": account_id,
            "ids": [email_id],
            "properties": ["keywords"],
        })
        emails = result.get("list", [])
        if not emails:
            raise NotFoundError("email", email_id)
        return dict(emails[0].get("keywords") or {})

    async def move(self, email_id: str, target_mailbox: str) -> Mailbox:
        """Move an email so that ``target_mailbox`` is its only mailbox."""
        target = await self.mailboxes.require(target_mailbox)
        await self._update(email_id, {"mailboxIds": {target.id: True}})
        logger.info(f"Moved {email_id} to {target.name}")
        return target

    async def set_keywords(self, email_id: str, keywords: dict[str, bool]) -> None:
        """Replace the whole keyword set of an email."""
        await self._update(email_id, {"keywords": keywords})

    async def _toggle_keyword(self, email_id: str, keyword: str, enabled: bool) -> dict[str, bool]:
        keywords = await self._keywords(email_id)
        if enabled:
            keywords[keyword] = True
        else:
            keywords.pop(keyword, None)
        await self.set_keywords(email_id, keywords)
        return keywords

    async def mark_read(self, email_id: str, read: bool = True) -> dict[str, bool]:
        return await self._toggle_keyword(email_id, "$seen", read)

    async def mark_flagged(self, email_id: str, flagged: bool = True) -> dict[str, bool]:
        return await self._toggle_keyword(email_id, "$flagged", flagged)

    async def _train(self, email_id: str, role: str, add: str, remove: str) -> dict[str, bool]:
        mailbox = await self.mailboxes.by_role(role)
        keywords = await self._keywords(email_id)
        keywords[add] = True
        keywords.pop(remove, None)
        await self._update(email_id, {
            "mailboxIds": {mailbox.id: True},
            "keywords": keywords,
        })
        return keywords

    async def mark_spam(self, email_id: str) -> dict[str, bool]:
        """Move to Junk and set ``$junk``, which trains the spam filter."""
        keywords = await self._train(email_id, "junk", "$junk", "$notjunk")
        logger.info(f"Marked {email_id} as spam")
        return keywords

    async def mark_not_spam(self, email_id: str) -> dict[str, bool]:
        """Move back to Inbox and set ``$notjunk``."""
        keywords = await self._train(email_id, "inbox", "$notjunk", "$junk")
        logger.info(f"Marked {email_id} as not spam")
        return keywords

    # ============ Identities ============

    async def identities(self) -> list[Identity]:
        account_id = await self.client.get_account_id()
        result = await self.client.call("Identity/get", {"accountId": account_id})
        return [Identity.from_dict(i) for i in result.get("list", [])]

    def _pick_identity(self, identities: list[Identity]) -> Identity:
        wanted = self.client.config.from_address
        if wanted:
            for identity in identities:
                if identity.email.lower() == wanted.lower():
                    return identity
            raise NotFoundError("identity", wanted)
        if not identities:
            raise NotFoundError("identity", "default")
        return identities[0]

    async def default_identity(self) -> Identity:
        return self._pick_identity(await self.identities())

    # ============ Sending ============

    async def send_context(self) -> tuple[Identity, Mailbox, Mailbox]:
        """Fetch identity plus Drafts and Sent mailboxes in one round trip."""
        account_id = await self.client.get_account_id()
        batch = Batch()
        identity_call = batch.add("Identity/get", {"accountId": account_id})
        mailbox_call = batch.add("Mailbox/get", {"accountId": account_id})
        response = await self.client.request(batch)

        identity = self._pick_identity([
            Identity.from_dict(i)
            for i in response.get(identity_call.call_id, identity_call.name).get("list", [])
        ])
        mailboxes = [
            Mailbox.from_dict(m)
            for m in response.get(mailbox_call.call_id, mailbox_call.name).get("list", [])
        ]
        drafts = find_role(mailboxes, "drafts")
        sent = find_role(mailboxes, "sent")
        if drafts is None:
            raise NotFoundError("mailbox", "drafts")
        if sent is None:
            raise NotFoundError("mailbox", "sent")
        return identity, drafts, sent

    async def send(self, draft: Draft) -> str:
        """Create the draft and submit it in a single batch.

        Returns:
            The id of the created email

        Raises:
            CreationError: If the draft email was not created
            SubmissionError: If the submission was not created
        """
        identity, drafts, sent = await self.send_context()
        account_id = await self.client.get_account_id()

        batch = Batch()
        email_call = batch.add("Email/set", {
            "accountId": account_id,
            "create": {DRAFT_CREATION_ID: build_email_create(draft, identity, drafts.id)},
        })
        submission_call = batch.add("EmailSubmission/set", {
            "accountId": account_id,
            "create": {
                SUBMISSION_CREATION_ID: {
                    "identityId": identity.id,
                    "emailId": batch.creation_ref(DRAFT_CREATION_ID),
                    "envelope": None,
                },
            },
            "onSuccessUpdateEmail": {
                f"#{SUBMISSION_CREATION_ID}": {
                    "mailboxIds": {sent.id: True},
                    "keywords/$draft": None,
                },
            },
        })
        response = await self.client.request(batch)

        email_result = SetResult.from_dict(response.get(email_call.call_id, email_call.name))
        error = email_result.not_created.get(DRAFT_CREATION_ID)
        if error is not None:
            logger.warning(f"Email/set notCreated: {error.type} {error.description or ''}")
            raise CreationError(DRAFT_CREATION_ID, error.type, error.description)

        email_id = email_result.created_id(DRAFT_CREATION_ID)
        if not email_id:
            raise CreationError(DRAFT_CREATION_ID, "noId", "no id returned")

        submission_result = SetResult.from_dict(response.get(submission_call.call_id, submission_call.name))
        error = submission_result.not_created.get(SUBMISSION_CREATION_ID)
        if error is not None:
            logger.warning(f"EmailSubmission/set notCreated: {error.type} {error.description or ''}")
            raise SubmissionError(SUBMISSION_CREATION_ID, error.type, error.description)

        logger.info(f"Sent email {email_id} to {', '.join(a.email for a in draft.to)}")
        return email_id

    async def build_reply(self, original_id: str, body: str) -> Draft:
        return build_reply(await self.get_email(original_id), body)

    async def reply(self, original_id: str, body: str) -> str:
        return await self.send(await self.build_reply(original_id, body))

    async def build_forward(
        self,
        original_id: str,
        note: str,
        to: list[EmailAddress],
        cc: list[EmailAddress] | None = None,
        bcc: list[EmailAddress] | None = None,
    ) -> Draft:
        return build_forward(await self.get_email(original_id), note, to, cc, bcc)

    async def forward(
        self,
        original_id: str,
        note: str,
        to: list[EmailAddress],
        cc: list[EmailAddress] | None = None,
        bcc: list[EmailAddress] | None = None,
    ) -> str:
        return await self.send(await self.build_forward(original_id, note, to, cc, bcc))

    # ============ Attachments ============

    async def list_attachments(self, email_id: str) -> list[Attachment]:
        email = await self.get_email(email_id)
        return [
            Attachment(
                email_id=email_id,
                blob_id=part.blob_id,
                name=part.name,
                type=part.type,
                size=part.size,
            )
            for part in email.attachments
            if part.blob_id
        ]

    async def download_attachment(self, email_id: str, blob_id: str) -> AttachmentContent:
        attachment = next(
            (a for a in await self.list_attachments(email_id) if a.blob_id == blob_id),
            None,
        )
        if attachment is None:
            raise NotFoundError("attachment", blob_id)

        blob = await self.client.download_blob(blob_id, attachment.name or "attachment", attachment.type)
        content_type = blob.content_type or attachment.type

        text = None
        if is_text_type(content_type):
            text = blob.data.decode("utf-8", errors="replace")

        return AttachmentContent(attachment=attachment, data=blob.data, type=content_type, text=text)
