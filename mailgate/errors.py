"""Exceptions raised by the JMAP client and the operations built on it."""


class JmapError(Exception):
    """Base class for all mailgate errors."""
    pass


class SessionFetchError(JmapError):
    """The session endpoint answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Failed to get JMAP session: {status} {body}")


class NoAccountError(JmapError):
    """The session has no primary account for the requested capability."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"No account found in session for {capability}")


class RequestFailedError(JmapError):
    """An API or download request answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"JMAP request failed: {status} {body}")


class ProtocolError(JmapError):
    """The server returned an ``error`` method response for the batch."""

    def __init__(self, error_type: str, description: str | None = None, call_id: str | None = None):
        self.error_type = error_type
        self.description = description
        self.call_id = call_id
        message = f"JMAP error: {error_type}"
        if description:
            message += f" - {description}"
        super().__init__(message)


class MissingResponseError(JmapError):
    """A method call in the batch has no matching response."""

    def __init__(self, call_id: str, method: str | None = None):
        self.call_id = call_id
        self.method = method
        label = f"{method} ({call_id})" if method else call_id
        super().__init__(f"No response for method call {label}")


class NotFoundError(JmapError):
    """A mailbox, email, thread, attachment or identity lookup had no match."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class SetFailedError(JmapError):
    """A ``.../set`` call rejected the entity of interest."""

    verb = "update"

    def __init__(self, entity_id: str, error_type: str, description: str | None = None):
        self.entity_id = entity_id
        self.error_type = error_type
        self.description = description
        message = f"Failed to {self.verb} {entity_id}: {error_type}"
        if description:
            message += f" - {description}"
        super().__init__(message)


class CreationError(SetFailedError):
    """An entry of ``notCreated`` for the creation id of interest."""
    verb = "create"


class SubmissionError(SetFailedError):
    """The email submission could not be created."""
    verb = "submit"


class UpdateError(SetFailedError):
    """An entry of ``notUpdated`` for the id of interest."""
    verb = "update"


class ComposeError(JmapError):
    """An outgoing message could not be derived from the original."""
    pass


class ConfirmationError(JmapError):
    """A confirm call presented a missing, expired or mismatched token."""
    pass
