"""JMAP wire types: session, method calls, batches and responses (RFC 8620)."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .errors import MissingResponseError, ProtocolError

CAPABILITY_CORE = "urn:ietf:params:jmap:core"
CAPABILITY_MAIL = "urn:ietf:params:jmap:mail"
CAPABILITY_SUBMISSION = "urn:ietf:params:jmap:submission"
CAPABILITY_MASKED_EMAIL = "https://www.fastmail.com/dev/maskedemail"

MAIL_USING = (CAPABILITY_CORE, CAPABILITY_MAIL, CAPABILITY_SUBMISSION)
MASKED_EMAIL_USING = (CAPABILITY_CORE, CAPABILITY_MASKED_EMAIL)

ERROR_METHOD = "error"


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    is_personal: bool = True
    is_read_only: bool = False
    capabilities: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, account_id: str, data: dict) -> "Account":
        return cls(
            id=account_id,
            name=data.get("name", ""),
            is_personal=data.get("isPersonal", True),
            is_read_only=data.get("isReadOnly", False),
            capabilities=data.get("accountCapabilities", {}),
        )


@dataclass(frozen=True)
class Session:
    """JMAP session descriptor. Treated as immutable once fetched."""
    capabilities: dict[str, Any]
    accounts: dict[str, Account]
    primary_accounts: dict[str, str]
    username: str
    api_url: str
    download_url: str
    upload_url: str
    event_source_url: str
    state: str

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            capabilities=data.get("capabilities", {}),
            accounts={
                account_id: Account.from_dict(account_id, account)
                for account_id, account in data.get("accounts", {}).items()
            },
            primary_accounts=data.get("primaryAccounts", {}),
            username=data.get("username", ""),
            api_url=data["apiUrl"],
            download_url=data.get("downloadUrl", ""),
            upload_url=data.get("uploadUrl", ""),
            event_source_url=data.get("eventSourceUrl", ""),
            state=data.get("state", ""),
        )

    def account_for(self, capability: str) -> str | None:
        """Return the primary account id for a capability, if any."""
        return self.primary_accounts.get(capability)


@dataclass(frozen=True)
class ResultReference:
    """Back-reference to a path in the result of an earlier call in the batch.

    Sent as the value of a ``#``-prefixed argument and resolved by the server.
    """
    result_of: str
    name: str
    path: str

    def to_wire(self) -> dict[str, str]:
        return {"resultOf": self.result_of, "name": self.name, "path": self.path}


@dataclass(frozen=True)
class MethodCall:
    name: str
    arguments: dict[str, Any]
    call_id: str

    def to_wire(self) -> list:
        return [self.name, _to_wire(self.arguments), self.call_id]


def _has_reference(value: Any) -> bool:
    if isinstance(value, ResultReference):
        return True
    if isinstance(value, dict):
        return any(_has_reference(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_reference(item) for item in value)
    return False


def _to_wire(value: Any) -> Any:
    if isinstance(value, ResultReference):
        return value.to_wire()
    if isinstance(value, dict):
        return {key: _to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    return value


class Batch:
    """Ordered, append-only sequence of method calls sent as one request.

    Back-references may only point at calls already in the batch, so the
    order calls are added in is the order they are sent and resolved in.
    """

    def __init__(self, using: tuple[str, ...] = MAIL_USING):
        self.using = tuple(using)
        self._calls: list[MethodCall] = []

    def __iter__(self) -> Iterator[MethodCall]:
        return iter(self._calls)

    def __len__(self) -> int:
        return len(self._calls)

    @property
    def calls(self) -> tuple[MethodCall, ...]:
        return tuple(self._calls)

    def add(self, name: str, arguments: dict[str, Any], call_id: str | None = None) -> MethodCall:
        """Append a method call and return it.

        Args:
            name: Method name, e.g. ``Email/get``
            arguments: Method arguments; may hold ResultReference values
            call_id: Correlation id; defaults to the call's position

        Raises:
            ValueError: If the call id is already used, a result reference
                points at a call not earlier in this batch, or a result
                reference is nested below the top level of the arguments
        """
        if call_id is None:
            call_id = str(len(self._calls))
        known = {call.call_id for call in self._calls}
        if call_id in known:
            raise ValueError(f"Duplicate call id in batch: {call_id}")

        for key, value in arguments.items():
            if isinstance(value, ResultReference):
                if not key.startswith("#"):
                    raise ValueError(f"Result reference argument must start with '#': {key}")
                if value.result_of not in known:
                    raise ValueError(f"Result reference to unknown call: {value.result_of}")
            elif _has_reference(value):
                # only top-level arguments are resolved by the server
                raise ValueError(f"Result reference must be a top-level argument: {key}")

        call = MethodCall(name=name, arguments=arguments, call_id=call_id)
        self._calls.append(call)
        return call

    def ref(self, call: MethodCall, path: str) -> ResultReference:
        """Build a reference to ``path`` in the result of an earlier call."""
        if call not in self._calls:
            raise ValueError(f"Call {call.call_id} is not part of this batch")
        return ResultReference(result_of=call.call_id, name=call.name, path=path)

    def creation_ref(self, creation_id: str) -> str:
        """Return the ``#creation_id`` marker for an object created earlier in the batch."""
        for call in self._calls:
            if creation_id in call.arguments.get("create", {}):
                return f"#{creation_id}"
        raise ValueError(f"No earlier call creates {creation_id}")

    def to_request(self) -> dict[str, Any]:
        return {
            "using": list(self.using),
            "methodCalls": [call.to_wire() for call in self._calls],
        }


@dataclass(frozen=True)
class MethodResponse:
    name: str
    result: dict[str, Any]
    call_id: str

    @classmethod
    def from_wire(cls, entry: list) -> "MethodResponse":
        name, result, call_id = entry
        return cls(name=name, result=result, call_id=call_id)


@dataclass
class BatchResponse:
    """Demultiplexed responses to a batch, in server order."""
    responses: list[MethodResponse]
    session_state: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "BatchResponse":
        return cls(
            responses=[MethodResponse.from_wire(entry) for entry in data.get("methodResponses", [])],
            session_state=data.get("sessionState", ""),
        )

    def raise_for_errors(self) -> None:
        """Raise ProtocolError for the first ``error`` response, if any."""
        for response in self.responses:
            if response.name == ERROR_METHOD:
                raise ProtocolError(
                    response.result.get("type", "unknown"),
                    response.result.get("description"),
                    response.call_id,
                )

    def check_complete(self, batch: Batch) -> None:
        """Raise MissingResponseError if any call in ``batch`` went unanswered."""
        answered = {response.call_id for response in self.responses}
        for call in batch:
            if call.call_id not in answered:
                raise MissingResponseError(call.call_id, call.name)

    def get(self, call_id: str, name: str | None = None) -> dict[str, Any]:
        """Return the result for a call id.

        A call may produce several responses (``onSuccessUpdateEmail`` adds an
        implicit ``Email/set``), so ``name`` picks among them.
        """
        for response in self.responses:
            if response.call_id == call_id and (name is None or response.name == name):
                return response.result
        raise MissingResponseError(call_id, name)

    def __getitem__(self, call_id: str) -> dict[str, Any]:
        return self.get(call_id)


@dataclass(frozen=True)
class SetError:
    type: str
    description: str | None = None
    properties: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "SetError":
        return cls(
            type=data.get("type", "unknown"),
            description=data.get("description"),
            properties=data.get("properties", []) or [],
        )


@dataclass
class SetResult:
    """Outcome of a ``.../set`` call, split into per-entity successes and failures."""
    created: dict[str, dict[str, Any]] = field(default_factory=dict)
    updated: dict[str, Any] = field(default_factory=dict)
    destroyed: list[str] = field(default_factory=list)
    not_created: dict[str, SetError] = field(default_factory=dict)
    not_updated: dict[str, SetError] = field(default_factory=dict)
    not_destroyed: dict[str, SetError] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "SetResult":
        def errors(key: str) -> dict[str, SetError]:
            return {k: SetError.from_dict(v) for k, v in (data.get(key) or {}).items()}

        return cls(
            created=data.get("created") or {},
            updated=data.get("updated") or {},
            destroyed=data.get("destroyed") or [],
            not_created=errors("notCreated"),
            not_updated=errors("notUpdated"),
            not_destroyed=errors("notDestroyed"),
        )

    def created_id(self, creation_id: str) -> str | None:
        return (self.created.get(creation_id) or {}).get("id")
