"""Command model types.

A command is a domain mutation that must be recorded in the ledger.
Callers describe who is acting (CommandContext), how the command may be
retried (CommandOptions) and receive a CommandResult. Failures are
returned as values, never raised past the command runner.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

COMMAND_EXECUTION_FAILED = "COMMAND_EXECUTION_FAILED"


@dataclass(frozen=True)
class CommandContext:
    organization_id: UUID
    user_id: UUID | None
    role: str
    request_id: str
    endpoint: str
    ip: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class CommandOptions:
    """Per-invocation options.

    Attributes:
        idempotency_key: Retries with the same key replay the first result.
        payload_hash: Hash of the request body; a retry with the same key
            but a different body is rejected.
        response_status: Status stored with the idempotency record.
        response_headers: Builds the headers of the first response from the
            command result. They are stored with the idempotency record and
            returned unchanged on replay.
        skip_ledger: Run without recording an entry. System use only.
    """

    idempotency_key: str | None = None
    payload_hash: str | None = None
    response_status: int = 200
    response_headers: Callable[[Any], Mapping[str, str]] | None = None
    skip_ledger: bool = False

    def headers_for(self, data: Any) -> dict[str, str]:
        if self.response_headers is None or data is None:
            return {}
        return dict(self.response_headers(data))


@dataclass(frozen=True)
class CommandError:
    code: str
    message: str
    internal_message: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    data: Any = None
    ledger_entry_id: UUID | None = None
    replayed: bool = False
    error: CommandError | None = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def success(
        cls,
        data: Any,
        ledger_entry_id: UUID | None,
        replayed: bool = False,
        headers: Mapping[str, str] | None = None,
    ) -> CommandResult:
        return cls(
            ok=True,
            data=data,
            ledger_entry_id=ledger_entry_id,
            replayed=replayed,
            headers=dict(headers or {}),
        )

    @classmethod
    def failure(
        cls, code: str, message: str, internal_message: str | None = None
    ) -> CommandResult:
        return cls(ok=False, error=CommandError(code, message, internal_message))
