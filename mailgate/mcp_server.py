"""MCP server exposing mailbox tools over stdio."""

import base64
import logging
from typing import Any

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import ImageContent, ResourceTemplate, TextContent, Tool

from .actions import GatedActions
from .client import JmapClient
from .config import Config, ServerConfig
from .confirm import ConfirmationGate, Intent, Outcome
from .content import format_email_full, format_email_summary, format_mailbox
from .errors import JmapError
from .mailboxes import sort_for_display
from .masked import MaskedEmail
from .operations import EmailOperations

logger = logging.getLogger("mailgate.mcp")

ToolResult = list[TextContent | ImageContent]

_ACTION_PROPERTY = {
    "type": "string",
    "enum": ["preview", "confirm"],
    "description": "'preview' to see exactly what will happen, 'confirm' to do it",
}
_TOKEN_PROPERTY = {
    "type": "string",
    "description": "confirmation_token returned by the preview call",
}
_EMAIL_ID_PROPERTY = {
    "type": "string",
    "description": "The email ID (obtained from list_emails or search_emails)",
}
_LIMIT_PROPERTY = {
    "type": "number",
    "description": "Maximum number of emails to return (default 25, max 100)",
}


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str] | None = None) -> Tool:
    return Tool(
        name=name,
        description=description,
        inputSchema={
            "type": "object",
            "properties": properties,
            "required": required or [],
        },
    )


def _gated(properties: dict[str, Any]) -> dict[str, Any]:
    return {"action": _ACTION_PROPERTY, **properties, "confirmation_token": _TOKEN_PROPERTY}


TOOLS = [
    _tool(
        "list_mailboxes",
        "List all mailboxes (folders) with their unread counts. Use this to discover "
        "available folders before listing emails.",
        {},
    ),
    _tool(
        "list_emails",
        "List emails in a mailbox, newest first. Use the email ID with get_email for full content.",
        {
            "mailbox": {
                "type": "string",
                "description": "Mailbox name (e.g. 'INBOX', 'Archive') or role (e.g. 'inbox', 'sent', 'junk')",
            },
            "limit": _LIMIT_PROPERTY,
        },
        ["mailbox"],
    ),
    _tool(
        "get_email",
        "Get the full content of an email: headers, body text and attachment info.",
        {"email_id": _EMAIL_ID_PROPERTY},
        ["email_id"],
    ),
    _tool(
        "get_thread",
        "Get every email in a conversation thread, oldest first.",
        {"thread_id": {"type": "string", "description": "Thread ID (shown by get_email)"}},
        ["thread_id"],
    ),
    _tool(
        "search_emails",
        "Search emails across all mailboxes. 'query' matches subject, sender, recipients and body. "
        "Alternatively give structured fields; all given fields must match.",
        {
            "query": {"type": "string", "description": "Free-text search"},
            "from": {"type": "string", "description": "Sender contains"},
            "to": {"type": "string", "description": "Recipient contains"},
            "subject": {"type": "string", "description": "Subject contains"},
            "body": {"type": "string", "description": "Body contains"},
            "mailbox": {"type": "string", "description": "Restrict to this mailbox name or role"},
            "after": {"type": "string", "description": "Received after (YYYY-MM-DD or ISO 8601)"},
            "before": {"type": "string", "description": "Received before (YYYY-MM-DD or ISO 8601)"},
            "has_attachment": {"type": "boolean"},
            "unread": {"type": "boolean"},
            "flagged": {"type": "boolean"},
            "limit": _LIMIT_PROPERTY,
        },
    ),
    _tool(
        "list_attachments",
        "List the attachments of an email with their blob IDs.",
        {"email_id": _EMAIL_ID_PROPERTY},
        ["email_id"],
    ),
    _tool(
        "get_attachment",
        "Download an attachment. Text is returned inline, images as image content.",
        {"email_id": _EMAIL_ID_PROPERTY, "blob_id": {"type": "string", "description": "Attachment blob ID"}},
        ["email_id", "blob_id"],
    ),
    _tool(
        "move_email",
        "Move an email to a different mailbox/folder. It is removed from all other folders.",
        {
            "email_id": _EMAIL_ID_PROPERTY,
            "target_mailbox": {
                "type": "string",
                "description": "Target mailbox name (e.g. 'Archive') or role (e.g. 'archive', 'trash')",
            },
        },
        ["email_id", "target_mailbox"],
    ),
    _tool(
        "mark_as_read",
        "Mark an email as read or unread.",
        {
            "email_id": _EMAIL_ID_PROPERTY,
            "read": {"type": "boolean", "description": "true to mark read, false for unread (default true)"},
        },
        ["email_id"],
    ),
    _tool(
        "mark_as_flagged",
        "Flag or unflag an email.",
        {
            "email_id": _EMAIL_ID_PROPERTY,
            "flagged": {"type": "boolean", "description": "true to flag, false to unflag (default true)"},
        },
        ["email_id"],
    ),
    _tool(
        "mark_as_spam",
        "Mark an email as spam. This moves it to Junk AND trains the spam filter. "
        "Requires explicit confirmation.",
        _gated({"email_id": _EMAIL_ID_PROPERTY}),
        ["action", "email_id"],
    ),
    _tool(
        "mark_as_not_spam",
        "Move an email out of Junk back to the Inbox and train the filter that it is not spam.",
        {"email_id": _EMAIL_ID_PROPERTY},
        ["email_id"],
    ),
    _tool(
        "send_email",
        "Compose and send a new email. ALWAYS use action='preview' first to review the draft.",
        _gated({
            "to": {"type": "string", "description": "Recipient address(es), comma-separated"},
            "subject": {"type": "string", "description": "Subject line"},
            "body": {"type": "string", "description": "Body text"},
            "cc": {"type": "string", "description": "CC recipients, comma-separated"},
            "bcc": {"type": "string", "description": "BCC recipients, comma-separated"},
        }),
        ["action", "to", "subject", "body"],
    ),
    _tool(
        "reply_to_email",
        "Reply to an email. ALWAYS use action='preview' first to review the draft.",
        _gated({
            "email_id": {"type": "string", "description": "The email ID to reply to"},
            "body": {"type": "string", "description": "Reply text, without quoting the original"},
        }),
        ["action", "email_id", "body"],
    ),
    _tool(
        "forward_email",
        "Forward an email with an optional note. ALWAYS use action='preview' first.",
        _gated({
            "email_id": {"type": "string", "description": "The email ID to forward"},
            "to": {"type": "string", "description": "Recipient address(es), comma-separated"},
            "body": {"type": "string", "description": "Note placed above the forwarded message"},
            "cc": {"type": "string", "description": "CC recipients, comma-separated"},
            "bcc": {"type": "string", "description": "BCC recipients, comma-separated"},
        }),
        ["action", "email_id", "to"],
    ),
    _tool(
        "list_masked_emails",
        "List masked (disposable) email addresses.",
        {"state": {"type": "string", "enum": ["pending", "enabled", "disabled", "deleted"]}},
    ),
    _tool(
        "create_masked_email",
        "Create a new masked email address for a website or service.",
        {
            "for_domain": {"type": "string", "description": "Domain the address is for, e.g. https://example.com"},
            "description": {"type": "string", "description": "Note to remember what it is for"},
            "email_prefix": {"type": "string", "description": "Optional prefix for the generated address"},
        },
        ["for_domain"],
    ),
    _tool(
        "set_masked_email_state",
        "Enable, disable or delete a masked email address. Requires explicit confirmation.",
        _gated({
            "masked_id": {"type": "string", "description": "Masked email ID"},
            "state": {"type": "string", "enum": ["enabled", "disabled", "deleted"]},
        }),
        ["action", "masked_id", "state"],
    ),
]

_SEARCH_FIELDS = ("from", "to", "subject", "body", "mailbox", "after", "before", "has_attachment", "unread", "flagged")


def _text(text: str) -> ToolResult:
    return [TextContent(type="text", text=text)]


def _limit(arguments: dict, config: ServerConfig) -> int:
    limit = arguments.get("limit")
    if limit is None:
        return config.default_limit
    return max(1, min(int(limit), config.max_limit))


def attachment_uri(scheme: str, email_id: str, blob_id: str) -> str:
    return f"{scheme}://attachment/{email_id}/{blob_id}"


def parse_attachment_uri(scheme: str, uri: str) -> tuple[str, str]:
    prefix = f"{scheme}://attachment/"
    if not uri.startswith(prefix):
        raise ValueError(f"Unsupported resource URI: {uri}")
    email_id, _, blob_id = uri[len(prefix):].partition("/")
    if not email_id or not blob_id:
        raise ValueError(f"Unsupported resource URI: {uri}")
    return email_id, blob_id


def format_masked_email(m: MaskedEmail) -> str:
    parts = [m.email, f"[{m.state}]"]
    if m.for_domain:
        parts.append(m.for_domain)
    if m.description:
        parts.append(f"- {m.description}")
    parts.append(f"(id: {m.id})")
    return " ".join(parts)


def render_outcome(outcome: Outcome) -> str:
    """Render a gated action's preview or its confirmed result."""
    if outcome.intent is Intent.PREVIEW:
        text = outcome.rendition.render()
        text += (
            "\n\n---\nTo proceed, call this tool again with action: \"confirm\", "
            "the same parameters"
        )
        text += f" and confirmation_token: \"{outcome.token}\"."
        return text

    fields = outcome.rendition.fields
    if outcome.action in ("send_email", "reply_to_email", "forward_email"):
        return (
            f"Email sent successfully!\n"
            f"To: {fields['To']}\n"
            f"Subject: {fields['Subject']}\n"
            f"Email ID: {outcome.result}"
        )
    if outcome.action == "mark_as_spam":
        return f"Marked as spam: \"{fields['Email']}\" from {fields['From']}"
    if outcome.action == "set_masked_email_state":
        return f"Masked email {fields['Address']} is now {fields['New state']}"
    return f"Done: {outcome.action}"


async def handle_tool(
    name: str,
    arguments: dict[str, Any],
    operations: EmailOperations,
    actions: GatedActions,
    config: ServerConfig,
) -> ToolResult:
    """Run one tool call and render its result; JMAP and input errors become text."""
    try:
        return await _dispatch(name, arguments, operations, actions, config)
    except (JmapError, ValueError) as e:
        logger.warning(f"Tool {name} failed: {e}")
        return _text(f"Error: {e}")


async def _dispatch(
    name: str,
    arguments: dict[str, Any],
    operations: EmailOperations,
    actions: GatedActions,
    config: ServerConfig,
) -> ToolResult:
    if name == "list_mailboxes":
        mailboxes = sort_for_display(await operations.list_mailboxes())
        return _text("\n".join(format_mailbox(m) for m in mailboxes))

    elif name == "list_emails":
        mailbox = arguments["mailbox"]
        emails = await operations.list_emails(mailbox, _limit(arguments, config))
        if not emails:
            return _text(f"No emails in {mailbox}")
        return _text("\n\n---\n\n".join(format_email_summary(e) for e in emails))

    elif name == "get_email":
        return _text(format_email_full(await operations.get_email(arguments["email_id"])))

    elif name == "get_thread":
        emails = await operations.get_thread(arguments["thread_id"])
        return _text("\n\n=====\n\n".join(format_email_full(e) for e in emails))

    elif name == "search_emails":
        structured = {k: arguments[k] for k in _SEARCH_FIELDS if arguments.get(k) is not None}
        query = arguments.get("query")
        if query and structured:
            structured["text"] = query
        search = structured or query
        if not search:
            raise ValueError("Give a query or at least one search field")
        emails = await operations.search(search, _limit(arguments, config))
        if not emails:
            return _text("No emails found")
        return _text("\n\n---\n\n".join(format_email_summary(e) for e in emails))

    elif name == "list_attachments":
        attachments = await operations.list_attachments(arguments["email_id"])
        if not attachments:
            return _text("No attachments")
        return _text("\n".join(
            f"{a.name or '(unnamed)'} ({a.type}, {a.size} bytes)\n"
            f"  blob: {a.blob_id}\n"
            f"  uri: {attachment_uri(config.resource_scheme, a.email_id, a.blob_id)}"
            for a in attachments
        ))

    elif name == "get_attachment":
        content = await operations.download_attachment(arguments["email_id"], arguments["blob_id"])
        label = content.attachment.name or content.attachment.blob_id
        if content.is_text:
            return _text(f"--- {label} ({content.type}) ---\n{content.text}")
        if content.type.startswith("image/"):
            return [
                TextContent(type="text", text=f"{label} ({content.type}, {len(content.data)} bytes)"),
                ImageContent(type="image", data=base64.b64encode(content.data).decode(), mimeType=content.type),
            ]
        uri = attachment_uri(config.resource_scheme, content.attachment.email_id, content.attachment.blob_id)
        return _text(
            f"{label} is binary ({content.type}, {len(content.data)} bytes) and cannot be shown "
            f"as text. Resource URI: {uri}"
        )

    elif name == "move_email":
        email = await operations.get_email(arguments["email_id"])
        target = await operations.move(arguments["email_id"], arguments["target_mailbox"])
        return _text(f"Moved email \"{email.subject}\" to {target.name}")

    elif name == "mark_as_read":
        read = arguments.get("read", True)
        await operations.mark_read(arguments["email_id"], read)
        return _text(f"Marked {arguments['email_id']} as {'read' if read else 'unread'}")

    elif name == "mark_as_flagged":
        flagged = arguments.get("flagged", True)
        await operations.mark_flagged(arguments["email_id"], flagged)
        return _text(f"{'Flagged' if flagged else 'Unflagged'} {arguments['email_id']}")

    elif name == "mark_as_spam":
        outcome = await actions.mark_as_spam(
            arguments["action"], arguments["email_id"], arguments.get("confirmation_token")
        )
        return _text(render_outcome(outcome))

    elif name == "mark_as_not_spam":
        await operations.mark_not_spam(arguments["email_id"])
        return _text(f"Moved {arguments['email_id']} to Inbox and marked as not spam")

    elif name == "send_email":
        outcome = await actions.send_email(
            arguments["action"],
            arguments["to"],
            arguments["subject"],
            arguments["body"],
            cc=arguments.get("cc"),
            bcc=arguments.get("bcc"),
            token=arguments.get("confirmation_token"),
        )
        return _text(render_outcome(outcome))

    elif name == "reply_to_email":
        outcome = await actions.reply_to_email(
            arguments["action"],
            arguments["email_id"],
            arguments["body"],
            token=arguments.get("confirmation_token"),
        )
        return _text(render_outcome(outcome))

    elif name == "forward_email":
        outcome = await actions.forward_email(
            arguments["action"],
            arguments["email_id"],
            arguments["to"],
            arguments.get("body", ""),
            cc=arguments.get("cc"),
            bcc=arguments.get("bcc"),
            token=arguments.get("confirmation_token"),
        )
        return _text(render_outcome(outcome))

    elif name == "list_masked_emails":
        masked = await actions.masked.list_masked(arguments.get("state"))
        if not masked:
            return _text("No masked emails")
        return _text("\n".join(format_masked_email(m) for m in masked))

    elif name == "create_masked_email":
        masked = await actions.masked.create(
            arguments["for_domain"],
            arguments.get("description", ""),
            email_prefix=arguments.get("email_prefix"),
        )
        return _text(f"Created masked email {masked.email} for {masked.for_domain} (id: {masked.id})")

    elif name == "set_masked_email_state":
        outcome = await actions.set_masked_email_state(
            arguments["action"],
            arguments["masked_id"],
            arguments["state"],
            token=arguments.get("confirmation_token"),
        )
        return _text(render_outcome(outcome))

    return _text(f"Unknown tool: {name}")


def create_mcp_server(
    operations: EmailOperations,
    actions: GatedActions,
    config: ServerConfig,
) -> Server:
    """Create and configure the MCP server with mailbox tools."""
    server = Server(config.name)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> ToolResult:
        return await handle_tool(name, arguments or {}, operations, actions, config)

    @server.list_resource_templates()
    async def list_resource_templates() -> list[ResourceTemplate]:
        return [
            ResourceTemplate(
                uriTemplate=f"{config.resource_scheme}://attachment/{{emailId}}/{{blobId}}",
                name="attachment",
                description="An email attachment, addressed by email ID and blob ID",
            )
        ]

    @server.read_resource()
    async def read_resource(uri) -> list[ReadResourceContents]:
        email_id, blob_id = parse_attachment_uri(config.resource_scheme, str(uri))
        content = await operations.download_attachment(email_id, blob_id)
        data = content.text if content.is_text else content.data
        return [ReadResourceContents(content=data, mime_type=content.type)]

    return server


async def run_mcp_server(config: Config) -> None:
    """Run the MCP server over stdio."""
    async with JmapClient(config.jmap) as client:
        operations = EmailOperations(client)
        actions = GatedActions(operations, ConfirmationGate(config.confirm))
        server = create_mcp_server(operations, actions, config.server)
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
